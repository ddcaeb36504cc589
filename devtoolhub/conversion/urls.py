from django.urls import path
from . import views

urlpatterns = [
    path('pdf-to-docx/', views.pdf_to_docx, name='pdf_to_docx'),
]
