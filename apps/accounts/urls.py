from django.urls import path
from . import views

app_name = 'users'

urlpatterns = [
    # Authentication
    path('login/', views.login, name='login'),

    # User profile
    path('user/', views.current_user, name='current-user'),

    # User directory
    path('users/active/', views.active_users, name='active-users'),
    path('users/<uuid:pk>/', views.UserDetailView.as_view(), name='user-detail'),
    path('users/<uuid:pk>/flags/', views.update_user_flags, name='user-flags'),
]
