"""
URL configuration for analytics app.
"""
from django.urls import path
from .views import TopTrainsView, APILogsView

urlpatterns = [
    path('top-trains/', TopTrainsView.as_view(), name='top_trains'),
    path('logs/', APILogsView.as_view(), name='api_logs'),
]
