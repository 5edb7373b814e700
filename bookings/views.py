"""Views for reservations."""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample, inline_serializer
from rest_framework import serializers as drf_serializers

from utils.exceptions import RailwayError
from .serializers import BookingCreateSerializer, BookingSerializer, TicketQuerySerializer, TicketSerializer
from .services import ReservationEngine
from .tickets import TicketProjector


# Response serializers for Swagger
class BookingResponseSerializer(drf_serializers.Serializer):
    message = drf_serializers.CharField()
    booking = BookingSerializer()
    ticket = TicketSerializer()


class BookingListResponseSerializer(drf_serializers.Serializer):
    count = drf_serializers.IntegerField()
    results = BookingSerializer(many=True)


ErrorSerializer = inline_serializer(name='BookingError', fields={
    'error': drf_serializers.CharField(),
    'code': drf_serializers.CharField(),
})


class BookingCreateView(APIView):
    """Book one seat."""

    @extend_schema(
        summary="Book a seat on a train",
        description="Reserves one seat and decrements the train's seat counter in a single transaction.",
        request=BookingCreateSerializer,
        responses={201: BookingResponseSerializer, 404: ErrorSerializer, 409: ErrorSerializer, 503: ErrorSerializer},
        examples=[
            OpenApiExample(
                "Lower berth with meals",
                value={
                    "train_number": 12951,
                    "berth_type": "lower",
                    "meals_required": True,
                    "travel_date": "2026-12-01"
                },
                request_only=True
            )
        ],
        tags=["Bookings"]
    )
    def post(self, request):
        serializer = BookingCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        try:
            reservation = ReservationEngine().book(
                request.user.pk,
                data['train_number'],
                data['berth_type'],
                data['meals_required'],
                data['travel_date'],
            )
            ticket = TicketProjector().render_ticket(request.user.pk, data['train_number'], data['travel_date'])
        except RailwayError as e:
            return Response(e.as_dict(), status=e.status_code)

        return Response({
            'message': 'Reservation successful',
            'booking': BookingSerializer(reservation).data,
            'ticket': ticket.as_dict()
        }, status=status.HTTP_201_CREATED)


class MyBookingsView(APIView):
    """Get user's reservations."""

    @extend_schema(
        summary="Get my reservations",
        description="Returns the authenticated user's reservations ordered by travel date",
        responses={200: BookingListResponseSerializer},
        tags=["Bookings"]
    )
    def get(self, request):
        reservations = ReservationEngine().list_for_user(request.user.pk)
        results = BookingSerializer(reservations, many=True).data
        return Response({
            'count': len(results),
            'results': results
        })


class BookingCancelView(APIView):
    """Cancel one of the user's reservations."""

    @extend_schema(
        summary="Cancel reservation",
        description="Deletes the reservation and returns its seat to the train. Users can only cancel their own reservations.",
        parameters=[
            OpenApiParameter(name='reservation_id', type=int, location='path', description='Reservation ID')
        ],
        responses={204: None, 404: ErrorSerializer, 503: ErrorSerializer},
        tags=["Bookings"]
    )
    def delete(self, request, reservation_id):
        try:
            ReservationEngine().cancel(request.user.pk, reservation_id)
        except RailwayError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TicketView(APIView):
    """Ticket for the latest reservation on a train and date."""

    @extend_schema(
        summary="Get ticket",
        parameters=[
            OpenApiParameter(name='train_number', type=int, required=True, description='Train number'),
            OpenApiParameter(name='travel_date', type=str, required=True, description='Travel date (YYYY-MM-DD)'),
        ],
        responses={200: TicketSerializer, 404: ErrorSerializer},
        tags=["Bookings"]
    )
    def get(self, request):
        query = TicketQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return Response(query.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            ticket = TicketProjector().render_ticket(
                request.user.pk,
                query.validated_data['train_number'],
                query.validated_data['travel_date'],
            )
        except RailwayError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(ticket.as_dict())
