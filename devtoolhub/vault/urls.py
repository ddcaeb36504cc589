from django.urls import path
from . import views

urlpatterns = [
    path('', views.entry_collection, name='password_entries'),
    path('<uuid:entry_id>/', views.entry_detail, name='password_entry_detail'),
]
