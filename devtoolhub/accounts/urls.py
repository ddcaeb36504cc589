from django.urls import path
from . import views

urlpatterns = [
    path('signup/', views.signup, name='api_signup'),
    path('signin/', views.signin, name='api_signin'),
    path('signout/', views.signout, name='api_signout'),
    path('session/', views.session, name='api_session'),
]
