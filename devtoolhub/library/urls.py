from django.urls import path
from . import views

urlpatterns = [
    path('favorites/', views.favorite_collection, name='favorites'),
    path('favorites/<str:tool_slug>/', views.favorite_detail, name='favorite_detail'),
    path('history/', views.history_collection, name='history'),
]
