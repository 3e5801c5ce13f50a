from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes
from .analytics import LedgerIndicators
from .serializers import (
    # Input serializers
    PeriodQuerySerializer,
    # Response serializers
    OverviewSerializer,
    UserTotalsSerializer,
    ErrorSerializer,
)
from .exceptions import AnalyticsServiceError, UserNotFoundError


@extend_schema(
    responses={200: OverviewSerializer},
    description=(
        "Fund-wide indicators: totals, monthly averages and average spending "
        "per active collaborator (all time and last six months)."
    ),
    tags=['analytics'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def overview(request):
    """Dashboard indicators - thin HTTP handler."""
    data = LedgerIndicators.overview()
    return Response(OverviewSerializer(data).data)


@extend_schema(
    parameters=[
        OpenApiParameter('period', OpenApiTypes.STR, description='Month period (YYYY-MM)'),
        OpenApiParameter('start_date', OpenApiTypes.DATE, description='Start date (YYYY-MM-DD)'),
        OpenApiParameter('end_date', OpenApiTypes.DATE, description='End date (YYYY-MM-DD)'),
    ],
    responses={
        200: UserTotalsSerializer,
        400: ErrorSerializer,
        404: ErrorSerializer,
    },
    description="Value and cakes covered by a user, counting only their share of divided purchases.",
    tags=['analytics'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_totals(request, user_id=None):
    """Per-user totals - thin HTTP handler."""
    # Use current user if no ID provided
    target_user_id = user_id if user_id is not None else request.user.id

    query_serializer = PeriodQuerySerializer(data=request.query_params)
    query_serializer.is_valid(raise_exception=True)
    params = query_serializer.validated_data

    try:
        data = LedgerIndicators.user_totals(
            user_id=target_user_id,
            start_date=params.get('start_date'),
            end_date=params.get('end_date'),
        )
    except UserNotFoundError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
    except AnalyticsServiceError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response(UserTotalsSerializer(data).data)
