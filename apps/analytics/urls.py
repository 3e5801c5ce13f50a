from django.urls import path
from . import views

app_name = 'analytics'

urlpatterns = [
    # Fund-wide indicators
    path('overview/', views.overview, name='overview'),

    # User totals
    path('user/<uuid:user_id>/', views.user_totals, name='user-totals'),
    path('user/', views.user_totals, name='my-totals'),  # Current user
]
