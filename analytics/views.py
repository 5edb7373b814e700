"""
Analytics views over the MongoDB activity log (admin only).
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from drf_spectacular.utils import extend_schema, OpenApiParameter, inline_serializer
from rest_framework import serializers as drf_serializers

from trains.permissions import IsAdminUser
from utils.mongo import get_api_logs, get_top_trains


# Response serializers for Swagger
class TrainActivitySerializer(drf_serializers.Serializer):
    train_number = drf_serializers.IntegerField()
    bookings = drf_serializers.IntegerField()
    cancellations = drf_serializers.IntegerField()
    net_bookings = drf_serializers.IntegerField()


class TopTrainsResponseSerializer(drf_serializers.Serializer):
    count = drf_serializers.IntegerField()
    results = TrainActivitySerializer(many=True)


def parse_int(value, default=None):
    try:
        return int(value) if value else default
    except (TypeError, ValueError):
        return default


class TopTrainsView(APIView):
    """Most booked trains."""
    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(
        summary="Get most booked trains (Admin only)",
        description="Bookings and cancellations per train aggregated from the MongoDB reservation log",
        parameters=[
            OpenApiParameter(name='limit', type=int, required=False, description='Number of trains (default: 5, max: 20)')
        ],
        responses={200: TopTrainsResponseSerializer},
        tags=["Analytics (Admin)"]
    )
    def get(self, request):
        limit = min(max(parse_int(request.query_params.get('limit'), 5), 1), 20)
        top_trains = get_top_trains(limit=limit)
        return Response({
            'count': len(top_trains),
            'results': top_trains
        })


class APILogsView(APIView):
    """Booking API request logs."""
    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(
        summary="Get API logs (Admin only)",
        description="Query booking API logs from MongoDB with filters and pagination.",
        parameters=[
            OpenApiParameter(name='endpoint', type=str, required=False, description='Filter by endpoint path'),
            OpenApiParameter(name='user_id', type=str, required=False, description='Filter by user ID'),
            OpenApiParameter(name='status_code', type=int, required=False, description='Filter by HTTP status'),
            OpenApiParameter(name='method', type=str, required=False, description='Filter by HTTP method (GET/POST/DELETE)'),
            OpenApiParameter(name='limit', type=int, required=False, description='Results limit (default: 50, max: 500)'),
            OpenApiParameter(name='offset', type=int, required=False, description='Pagination offset'),
        ],
        responses={
            200: inline_serializer(name='LogsResponse', fields={
                'count': drf_serializers.IntegerField(),
                'limit': drf_serializers.IntegerField(),
                'offset': drf_serializers.IntegerField(),
                'results': drf_serializers.ListField()
            }),
        },
        tags=["Analytics (Admin)"]
    )
    def get(self, request):
        params = request.query_params
        filters = {
            'limit': min(max(parse_int(params.get('limit'), 50), 1), 500),
            'offset': max(parse_int(params.get('offset'), 0), 0),
            'endpoint': params.get('endpoint'),
            'user_id': params.get('user_id'),
            'status_code': parse_int(params.get('status_code')),
            'method': params.get('method', '').upper() or None,
        }

        logs = get_api_logs(**filters)
        return Response({
            'count': len(logs),
            'limit': filters['limit'],
            'offset': filters['offset'],
            'results': logs
        }, status=status.HTTP_200_OK)
