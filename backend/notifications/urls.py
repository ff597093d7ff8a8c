from django.urls import path
from . import views

app_name = 'notifications'

urlpatterns = [
    path('', views.notification_list, name='notification-list'),
    path('unread-count/', views.notification_unread_count, name='unread-count'),
    path('read-all/', views.mark_all_notifications_read, name='mark-all-read'),
    path('<int:notification_id>/read/', views.mark_notification_read, name='mark-read'),
]
