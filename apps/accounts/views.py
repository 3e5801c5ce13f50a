from rest_framework import status, generics, serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema
from .models import User
from .permissions import IsLedgerAdmin
from .serializers import (
    UserSerializer,
    ActiveUserSerializer,
    UserLoginSerializer,
    ProfileUpdateSerializer,
    UserFlagsSerializer,
)
from .services import (
    start_session,
    get_active_users,
    set_user_flags,
    update_profile,
    InvalidCredentialsError,
    InactiveAccountError,
    UserNotFoundError,
    SelfModificationError,
)


# Response serializers for API documentation
class TokensResponseSerializer(serializers.Serializer):
    refresh = serializers.CharField()
    access = serializers.CharField()


class AuthResponseSerializer(serializers.Serializer):
    message = serializers.CharField()
    user = UserSerializer()
    tokens = TokensResponseSerializer()


class ErrorResponseSerializer(serializers.Serializer):
    error = serializers.CharField()


@extend_schema(
    request=UserLoginSerializer,
    responses={
        200: AuthResponseSerializer,
        400: ErrorResponseSerializer,
        401: ErrorResponseSerializer,
        403: ErrorResponseSerializer,
    },
    description="Authenticate with email and password to receive JWT tokens.",
    tags=['auth'],
)
@api_view(['POST'])
@permission_classes([AllowAny])
def login(request):
    """Login with email and password."""
    serializer = UserLoginSerializer(data=request.data)

    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        session = start_session(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password'],
        )
    except InvalidCredentialsError:
        return Response({
            'error': 'Invalid credentials'
        }, status=status.HTTP_401_UNAUTHORIZED)
    except InactiveAccountError:
        return Response({
            'error': 'Account is deactivated'
        }, status=status.HTTP_403_FORBIDDEN)

    return Response({
        'message': 'Login successful',
        'user': UserSerializer(session.user).data,
        'tokens': {
            'refresh': session.refresh,
            'access': session.access,
        }
    })


@extend_schema(
    request=ProfileUpdateSerializer,
    responses={
        200: UserSerializer,
        400: ErrorResponseSerializer,
    },
    description="Get or update (name, photo_url) the current user's profile.",
    tags=['auth'],
)
@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def current_user(request):
    """Get or update the current authenticated user profile."""
    if request.method == 'GET':
        return Response(UserSerializer(request.user).data)

    serializer = ProfileUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    user = update_profile(user=request.user, **serializer.validated_data)
    return Response(UserSerializer(user).data)


@extend_schema(
    responses={200: ActiveUserSerializer(many=True)},
    description="List active collaborators with their current cake balance.",
    tags=['users'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def active_users(request):
    """User directory: all active collaborators."""
    return Response(ActiveUserSerializer(get_active_users(), many=True).data)


@extend_schema(
    request=UserFlagsSerializer,
    responses={
        200: UserSerializer,
        400: ErrorResponseSerializer,
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
    },
    description="Admin only: activate/deactivate a user or grant/revoke admin.",
    tags=['users'],
)
@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsLedgerAdmin])
def update_user_flags(request, pk):
    """Change is_active / is_admin of a user."""
    serializer = UserFlagsSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        user = set_user_flags(
            user_id=pk,
            acting_user=request.user,
            **serializer.validated_data,
        )
    except UserNotFoundError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
    except SelfModificationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response(UserSerializer(user).data)


class UserDetailView(generics.RetrieveAPIView):
    """
    Get user profile by ID.

    GET /api/auth/users/{id}/
    """
    queryset = User.objects.all()
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]
