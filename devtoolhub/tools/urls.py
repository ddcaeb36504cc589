from django.urls import path
from . import views

urlpatterns = [
    path('', views.tool_list, name='tool_list'),
    path('<slug:slug>/', views.tool_detail, name='tool_detail'),
    path('<slug:slug>/<slug:action>/', views.run_action, name='tool_run'),
]
