from django.urls import path
from . import views

app_name = 'donations'

urlpatterns = [
    # Donor APIs
    path('donations/', views.create_donation, name='create-donation'),
    path('donations/<int:donation_id>/', views.donation_detail, name='donation-detail'),
    path('donations/<int:donation_id>/resubmit/', views.resubmit_donation, name='resubmit-donation'),

    # Beneficiary APIs
    path('donations/<int:donation_id>/respond/', views.respond_to_offer, name='respond-to-offer'),
    path('beneficiaries/nearest/', views.nearest_beneficiaries, name='nearest-beneficiaries'),

    # Volunteer Task Actions
    path('tasks/<int:task_id>/', views.task_detail, name='task-detail'),
    path('tasks/<int:task_id>/accept/', views.accept_delivery_task, name='accept-task'),
    path('tasks/<int:task_id>/reject/', views.reject_delivery_task, name='reject-task'),
    path('tasks/<int:task_id>/complete/', views.complete_delivery_task, name='complete-task'),
]
