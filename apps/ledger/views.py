from django.db import models
from rest_framework import mixins, status, viewsets, serializers as drf_serializers
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.pagination import PageNumberPagination
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema
from apps.accounts.permissions import IsLedgerAdmin, IsLedgerAdminOrReadOnly
from .exceptions import to_api_exception
from .models import CompensationRecord, Contribution
from .permissions import CanManageContribution
from .serializers import (
    CompensationRecordSerializer,
    ConfigurationSerializer,
    ConfigurationUpdateSerializer,
    ContributionCreateResponseSerializer,
    ContributionCreateSerializer,
    ContributionFilterSerializer,
    ContributionFinancialsSerializer,
    ContributionSerializer,
    ContributionShareSerializer,
    ContributionUpdateSerializer,
    EvidenceInputSerializer,
    EvidenceResponseSerializer,
    RecomputationReportSerializer,
    RecomputeInputSerializer,
    RoundStatusSerializer,
)
from .services import (
    LedgerServiceError,
    attach_evidence,
    create_contribution,
    edit_contribution_financials,
    get_configuration,
    get_contribution,
    get_contribution_details,
    get_round_status,
    recompute_all_balances,
    set_cake_unit_price,
    update_contribution,
)

EVIDENCE_WARNING = (
    'Purchase evidence could not be stored; the contribution was recorded without it.'
)


class ErrorResponseSerializer(drf_serializers.Serializer):
    detail = drf_serializers.CharField()


class LedgerPagination(PageNumberPagination):
    """Custom pagination for ledger listings."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class ContributionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for contributions.

    list: All contributions (filterable by user/payer/round/date)
    create: Record a contribution (balances are credited immediately)
    retrieve: Get a specific contribution
    partial_update: Change note, purchase date or evidence URL
    financials: Admin edit of value / division / participants
    details: Per-person shares of a divided contribution
    evidence: Attach purchase evidence (file or link)
    """

    queryset = Contribution.objects.select_related('payer')
    serializer_class = ContributionSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = LedgerPagination
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_permissions(self):
        """Use different permissions for different actions."""
        if self.action in ['partial_update', 'evidence']:
            return [IsAuthenticated(), CanManageContribution()]
        elif self.action == 'financials':
            return [IsAuthenticated(), IsLedgerAdmin()]
        return super().get_permissions()

    def get_queryset(self):
        """Filter contributions using input serializer validation."""
        queryset = super().get_queryset()
        if self.action != 'list':
            return queryset

        filter_serializer = ContributionFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        user_id = params.get('user')
        if user_id:
            queryset = queryset.filter(
                models.Q(payer_id=user_id) |
                models.Q(shares__user_id=user_id)
            ).distinct()

        if 'payer' in params:
            queryset = queryset.filter(payer_id=params['payer'])
        if 'round' in params:
            queryset = queryset.filter(round_id=params['round'])
        if 'date_from' in params:
            queryset = queryset.filter(purchase_date__gte=params['date_from'])
        if 'date_to' in params:
            queryset = queryset.filter(purchase_date__lte=params['date_to'])

        return queryset

    @extend_schema(
        request=ContributionCreateSerializer,
        responses={
            201: ContributionCreateResponseSerializer,
            200: ContributionCreateResponseSerializer,
            400: ErrorResponseSerializer,
            409: ErrorResponseSerializer,
        },
        description=(
            "Record a contribution. A repeated idempotency_key returns the "
            "original contribution with status 200. Evidence upload failures "
            "are reported in `warnings`; the contribution is kept."
        ),
    )
    def create(self, request):
        serializer = ContributionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payer_id = data.get('payer') or request.user.id
        if str(payer_id) != str(request.user.id) and not request.user.is_admin:
            raise PermissionDenied('Only administrators can record contributions for others.')

        try:
            result = create_contribution(
                payer_id=payer_id,
                purchase_date=data['purchase_date'],
                value=data['value'],
                is_divided=data['is_divided'],
                participant_user_ids=data.get('participant_user_ids'),
                idempotency_key=data.get('idempotency_key') or None,
                note=data.get('note', ''),
            )
        except LedgerServiceError as e:
            raise to_api_exception(e) from e

        warnings = []
        evidence = data.get('purchase_evidence_file') or data.get('purchase_evidence_link')
        if evidence and result.created:
            if attach_evidence(result.contribution_id, evidence) is None:
                warnings.append(EVIDENCE_WARNING)

        contribution = get_contribution(result.contribution_id)
        return Response({
            'contribution': ContributionSerializer(contribution).data,
            'compensation_created': result.compensation_created,
            'last_place_user_ids': result.last_place_user_ids,
            'warnings': warnings,
        }, status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK)

    @extend_schema(
        request=ContributionUpdateSerializer,
        responses={200: ContributionSerializer, 404: ErrorResponseSerializer},
        description="Update non-financial fields. Balances are not affected.",
    )
    def partial_update(self, request, pk=None):
        contribution = self.get_object()
        serializer = ContributionUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            contribution = update_contribution(contribution.id, **serializer.validated_data)
        except LedgerServiceError as e:
            raise to_api_exception(e) from e

        return Response(ContributionSerializer(contribution).data)

    @extend_schema(
        request=ContributionFinancialsSerializer,
        responses={
            200: ContributionCreateResponseSerializer,
            400: ErrorResponseSerializer,
            409: ErrorResponseSerializer,
        },
        description=(
            "Admin only: change value, division or participants. The old "
            "balance effects are reversed and the new ones applied atomically."
        ),
    )
    @action(detail=True, methods=['post'])
    def financials(self, request, pk=None):
        """
        POST /api/ledger/contributions/{id}/financials/
        """
        contribution = self.get_object()
        serializer = ContributionFinancialsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = edit_contribution_financials(contribution.id, **serializer.validated_data)
        except LedgerServiceError as e:
            raise to_api_exception(e) from e

        return Response({
            'contribution': ContributionSerializer(get_contribution(result.contribution_id)).data,
            'compensation_created': result.compensation_created,
            'last_place_user_ids': result.last_place_user_ids,
            'warnings': [],
        })

    @extend_schema(
        responses={200: ContributionShareSerializer(many=True), 400: ErrorResponseSerializer},
        description="Per-person shares of a divided contribution, payer first.",
    )
    @action(detail=True, methods=['get'])
    def details(self, request, pk=None):
        """
        GET /api/ledger/contributions/{id}/details/
        """
        contribution = self.get_object()
        try:
            shares = get_contribution_details(contribution.id)
        except LedgerServiceError as e:
            raise to_api_exception(e) from e

        return Response(ContributionShareSerializer(shares, many=True).data)

    @extend_schema(
        request=EvidenceInputSerializer,
        responses={200: EvidenceResponseSerializer},
        description="Attach purchase evidence as a link or an uploaded file.",
    )
    @action(detail=True, methods=['post'])
    def evidence(self, request, pk=None):
        """
        POST /api/ledger/contributions/{id}/evidence/
        """
        contribution = self.get_object()
        serializer = EvidenceInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        evidence = serializer.validated_data.get('file') or serializer.validated_data['link']
        url = attach_evidence(contribution.id, evidence)

        if url is None:
            contribution.refresh_from_db()
            return Response({
                'purchase_evidence_url': contribution.purchase_evidence_url,
                'warnings': [EVIDENCE_WARNING],
            })

        return Response({'purchase_evidence_url': url, 'warnings': []})


class CompensationRecordViewSet(viewsets.ReadOnlyModelViewSet):
    """Closed rounds, most recent first."""

    queryset = CompensationRecord.objects.all()
    serializer_class = CompensationRecordSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = LedgerPagination


@extend_schema(
    request=ConfigurationUpdateSerializer,
    responses={200: ConfigurationSerializer, 400: ErrorResponseSerializer},
    description="Get the ledger configuration, or (admin) change the cake price.",
)
@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsLedgerAdminOrReadOnly])
def configuration(request):
    """Cake price, current round and maintenance flag."""
    if request.method == 'GET':
        return Response(ConfigurationSerializer(get_configuration()).data)

    serializer = ConfigurationUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        config = set_cake_unit_price(
            serializer.validated_data['cake_unit_price'],
            updated_by=request.user,
        )
    except LedgerServiceError as e:
        raise to_api_exception(e) from e

    return Response(ConfigurationSerializer(config).data)


@extend_schema(
    responses={200: RoundStatusSerializer},
    description="Current round: standings of active users and who buys next.",
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def round_status(request):
    return Response(RoundStatusSerializer(get_round_status()).data)


@extend_schema(
    request=RecomputeInputSerializer,
    responses={200: RecomputationReportSerializer, 409: ErrorResponseSerializer},
    description="Admin only: rebuild all balances from the contribution history.",
)
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsLedgerAdmin])
def recompute(request):
    serializer = RecomputeInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        report = recompute_all_balances(dry_run=serializer.validated_data['dry_run'])
    except LedgerServiceError as e:
        raise to_api_exception(e) from e

    return Response(RecomputationReportSerializer(report).data)
