"""Views for user registration, authentication and profile."""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from rest_framework_simplejwt.tokens import RefreshToken
from django.utils import timezone
from drf_spectacular.utils import extend_schema, OpenApiExample, inline_serializer
from rest_framework import serializers as drf_serializers

from utils.exceptions import RailwayError
from .auth import AuthenticationGate
from .serializers import (
    PasswordChangeSerializer,
    ProfileUpdateSerializer,
    UserLoginSerializer,
    UserRegistrationSerializer,
    UserSerializer,
)


# Response serializers for Swagger documentation
class TokenResponseSerializer(drf_serializers.Serializer):
    refresh = drf_serializers.CharField()
    access = drf_serializers.CharField()


class AuthResponseSerializer(drf_serializers.Serializer):
    message = drf_serializers.CharField()
    user = UserSerializer()
    tokens = TokenResponseSerializer()


ErrorSerializer = inline_serializer(name='Error', fields={
    'error': drf_serializers.CharField(),
    'code': drf_serializers.CharField(),
})


def issue_tokens(user):
    refresh = RefreshToken.for_user(user)
    return {'refresh': str(refresh), 'access': str(refresh.access_token)}


class RegisterView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Register a new user",
        description="Create a new user account and receive JWT tokens",
        request=UserRegistrationSerializer,
        responses={201: AuthResponseSerializer, 409: ErrorSerializer},
        examples=[
            OpenApiExample(
                "Register Example",
                value={
                    "username": "ravi_k",
                    "full_name": "Ravi Kumar",
                    "age": 34,
                    "phone": "9876543210",
                    "national_id": "123412341234",
                    "address": "12 MG Road, Bengaluru",
                    "postal_code": "560001",
                    "password": "SecurePass123!",
                    "password_confirm": "SecurePass123!"
                },
                request_only=True
            )
        ],
        tags=["Authentication"]
    )
    def post(self, request):
        serializer = UserRegistrationSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            user = AuthenticationGate().register(
                serializer.to_profile(),
                serializer.validated_data['password'],
            )
        except RailwayError as e:
            return Response(e.as_dict(), status=e.status_code)

        return Response({
            'message': 'User registered successfully',
            'user': UserSerializer(user).data,
            'tokens': issue_tokens(user)
        }, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Login user",
        description="Authenticate with username and password to receive JWT tokens",
        request=UserLoginSerializer,
        responses={200: AuthResponseSerializer, 401: ErrorSerializer},
        examples=[
            OpenApiExample(
                "Login Example",
                value={
                    "username": "admin",
                    "password": "Admin@123"
                },
                request_only=True
            )
        ],
        tags=["Authentication"]
    )
    def post(self, request):
        serializer = UserLoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            user = AuthenticationGate().authenticate(
                serializer.validated_data['username'],
                serializer.validated_data['password'],
            )
        except RailwayError as e:
            return Response(e.as_dict(), status=e.status_code)

        user.last_login = timezone.now()
        user.save(update_fields=['last_login'])
        return Response({
            'message': 'Login successful',
            'user': UserSerializer(user).data,
            'tokens': issue_tokens(user)
        }, status=status.HTTP_200_OK)


class UserProfileView(APIView):
    @extend_schema(
        summary="Get current user profile",
        description="Returns the profile of the authenticated user",
        responses={200: UserSerializer},
        tags=["Authentication"]
    )
    def get(self, request):
        return Response(UserSerializer(request.user).data)

    @extend_schema(
        summary="Update current user profile",
        description="Change full name, phone, address or postal code",
        request=ProfileUpdateSerializer,
        responses={200: UserSerializer},
        tags=["Authentication"]
    )
    def patch(self, request):
        serializer = ProfileUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            user = AuthenticationGate().update_profile(request.user.pk, **serializer.validated_data)
        except RailwayError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response(UserSerializer(user).data)


class PasswordChangeView(APIView):
    @extend_schema(
        summary="Change password",
        request=PasswordChangeSerializer,
        responses={200: inline_serializer(name='PasswordChanged', fields={'message': drf_serializers.CharField()}),
                   401: ErrorSerializer},
        tags=["Authentication"]
    )
    def post(self, request):
        serializer = PasswordChangeSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            AuthenticationGate().change_password(
                request.user.pk,
                serializer.validated_data['current_password'],
                serializer.validated_data['new_password'],
            )
        except RailwayError as e:
            return Response(e.as_dict(), status=e.status_code)
        return Response({'message': 'Password changed successfully'})
