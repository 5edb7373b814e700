"""Views for train inventory management."""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiParameter
from rest_framework import serializers as drf_serializers

from utils.exceptions import RailwayError
from .permissions import IsAdminUser
from .serializers import TrainCreateSerializer, TrainSerializer, TrainUpdateSerializer
from .services import TrainInventory


# Response serializers for Swagger
class TrainListResponseSerializer(drf_serializers.Serializer):
    count = drf_serializers.IntegerField()
    results = TrainSerializer(many=True)


class AdminWritesMixin:
    """Reads for any authenticated user, writes for admins only."""

    def get_permissions(self):
        if self.request.method in ('GET', 'HEAD', 'OPTIONS'):
            return [IsAuthenticated()]
        return [IsAuthenticated(), IsAdminUser()]


class TrainListView(AdminWritesMixin, APIView):

    @extend_schema(
        summary="List all trains",
        description="All trains with their remaining seats, ordered by train number",
        responses={200: TrainListResponseSerializer},
        tags=["Trains"]
    )
    def get(self, request):
        trains = TrainInventory().list_trains()
        return Response({'count': trains.count(), 'results': TrainSerializer(trains, many=True).data})

    @extend_schema(
        summary="Add a train (Admin only)",
        description="Create a new train with its initial seat count. Requires admin privileges.",
        request=TrainCreateSerializer,
        responses={201: TrainSerializer},
        examples=[
            OpenApiExample(
                "Create Train",
                value={
                    "train_number": 12951,
                    "train_name": "Mumbai Rajdhani",
                    "origin": "Delhi",
                    "destination": "Mumbai",
                    "seats_available": 500,
                    "specification": "AC, pantry car"
                },
                request_only=True
            )
        ],
        tags=["Trains (Admin)"]
    )
    def post(self, request):
        serializer = TrainCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            train = TrainInventory().add_train(**serializer.validated_data)
        except RailwayError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(TrainSerializer(train).data, status=status.HTTP_201_CREATED)


class TrainDetailView(AdminWritesMixin, APIView):
    train_number_param = OpenApiParameter(name='train_number', type=int, location='path', description='Train number')

    @extend_schema(
        summary="Get train",
        parameters=[train_number_param],
        responses={200: TrainSerializer},
        tags=["Trains"]
    )
    def get(self, request, train_number):
        try:
            train = TrainInventory().get_train(train_number)
        except RailwayError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(TrainSerializer(train).data)

    @extend_schema(
        summary="Update train details (Admin only)",
        description="Change name, origin, destination or specification. Seat counts are managed by reservations.",
        parameters=[train_number_param],
        request=TrainUpdateSerializer,
        responses={200: TrainSerializer},
        tags=["Trains (Admin)"]
    )
    def patch(self, request, train_number):
        serializer = TrainUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            train = TrainInventory().update_train(train_number, **serializer.validated_data)
        except RailwayError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(TrainSerializer(train).data)

    @extend_schema(
        summary="Remove train (Admin only)",
        description="Refused with 409 while reservations reference the train.",
        parameters=[train_number_param],
        responses={204: None},
        tags=["Trains (Admin)"]
    )
    def delete(self, request, train_number):
        try:
            TrainInventory().remove_train(train_number)
        except RailwayError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(status=status.HTTP_204_NO_CONTENT)
