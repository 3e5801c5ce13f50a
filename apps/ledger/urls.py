from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'ledger'

router = DefaultRouter()
router.register(r'contributions', views.ContributionViewSet, basename='contribution')
router.register(r'compensations', views.CompensationRecordViewSet, basename='compensation')

urlpatterns = [
    # Contribution routes
    # GET    /api/ledger/contributions/                  - List contributions
    # POST   /api/ledger/contributions/                  - Record contribution
    # GET    /api/ledger/contributions/{id}/             - Get contribution
    # PATCH  /api/ledger/contributions/{id}/             - Update note/date/evidence URL
    # POST   /api/ledger/contributions/{id}/financials/  - Admin financial edit
    # GET    /api/ledger/contributions/{id}/details/     - Shares of a divided contribution
    # POST   /api/ledger/contributions/{id}/evidence/    - Attach evidence

    # GET    /api/ledger/compensations/                  - Closed rounds

    path('configuration/', views.configuration, name='configuration'),
    path('round/', views.round_status, name='round-status'),
    path('recompute/', views.recompute, name='recompute'),

    path('', include(router.urls)),
]
