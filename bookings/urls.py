"""
URL configuration for bookings app.
"""
from django.urls import path
from .views import BookingCreateView, MyBookingsView, BookingCancelView, TicketView

urlpatterns = [
    path('', BookingCreateView.as_view(), name='booking_create'),
    path('my/', MyBookingsView.as_view(), name='my_bookings'),
    path('ticket/', TicketView.as_view(), name='ticket'),
    path('<int:reservation_id>/', BookingCancelView.as_view(), name='booking_cancel'),
]
