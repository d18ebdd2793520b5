"""
API Views for the contest grading engine.
Provides endpoints for submissions, leaderboards, results and grader review.
"""
from django.apps import apps
from django.utils.decorators import method_decorator
from django.views.decorators.cache import never_cache
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiResponse

from contests.exceptions import PolicyError
from contests.models import AuditLog, Result
from contests.permissions import IsGraderOrOwner
from contests.throttling import SubmissionRateThrottle
from contests.services import (
    ContestWindow, LeaderboardService, ResultDetailService, ReviewService,
    SimilarityReport, SubmissionService,
)
from .serializers import (
    GradeSubmissionSerializer, ResultStatusSerializer,
    ResultVisibilitySerializer, ResultSerializer
)


def _engine():
    return apps.get_app_config('contests')


def _storage():
    return _engine().storage_health


def _time_spent(data):
    value = data.get('time_spent', 0) if hasattr(data, 'get') else 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return 0
    return value


# =============================================================================
# SUBMISSIONS
# =============================================================================

@extend_schema(tags=['Submissions'])
class ContestSubmitView(APIView):
    """Grade and store a contestant's answers for a contest."""
    permission_classes = [IsAuthenticated]
    throttle_classes = [SubmissionRateThrottle]

    @extend_schema(
        summary="Submit contest answers",
        description="""
Submit answers for a contest. The payload shape depends on the contest type.

**Objective:** `{"answers": {"<question_id>": "<option>"}}`

**Essay:** `{"essay": "..."}` (also accepted: `content`, `answer`, `answers`)

**Mixed:** `{"answers": {"<question_id>": "<option or essay text>"}}` with an entry for every question

A contestant may submit once per calendar month. A submission in a later
month replaces the previous attempt.
""",
        request={'application/json': OpenApiTypes.OBJECT},
        responses={
            200: OpenApiResponse(description="Graded result"),
            400: OpenApiResponse(description="Malformed payload"),
            404: OpenApiResponse(description="Contest not found"),
            409: OpenApiResponse(description="Submission not allowed"),
            503: OpenApiResponse(description="Storage unavailable"),
        },
        examples=[
            OpenApiExample(
                'Objective Request',
                value={"answers": {"1": "A", "2": "C"}},
                request_only=True
            ),
            OpenApiExample(
                'Essay Request',
                value={"essay": "In my experience, the hardest part of learning..."},
                request_only=True
            ),
        ]
    )
    def post(self, request, contest_id):
        service = SubmissionService(storage=_storage(), locks=_engine().submission_locks)
        try:
            outcome = service.submit(request.user, contest_id, request.data, time_spent=_time_spent(request.data))
        except PolicyError as e:
            AuditLog.log(
                event_type=AuditLog.EventType.SUBMIT_REJECTED,
                description=f"Submission rejected: {e.reason}",
                request=request,
                user=request.user,
                metadata={'contest_id': contest_id, 'reason': e.reason}
            )
            raise

        AuditLog.log(
            event_type=AuditLog.EventType.CONTEST_RESUBMIT if outcome.replaced else AuditLog.EventType.CONTEST_SUBMIT,
            description=f"{'Resubmitted' if outcome.replaced else 'Submitted'}: contest {contest_id}",
            request=request,
            user=request.user,
            metadata={
                'contest_id': contest_id,
                'result_id': outcome.result.id,
                'score': float(outcome.score),
                'max_score': float(outcome.max_score)
            }
        )
        return Response(outcome.to_dict(), status=status.HTTP_200_OK)


# =============================================================================
# LEADERBOARD & RESULTS
# =============================================================================

@method_decorator(never_cache, name='dispatch')
@extend_schema(tags=['Leaderboard'])
class ContestLeaderboardView(APIView):
    """Public leaderboard of a contest."""
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get contest leaderboard",
        description="""
Ranked by total score, ties broken by earlier completion.

**Returns:** rank, position label, user, score, percentage, completion time.
""",
        responses={
            200: OpenApiResponse(
                description="Leaderboard data",
                examples=[
                    OpenApiExample(
                        'Response Example',
                        value={
                            "success": True,
                            "contest_id": 1,
                            "contest_title": "Monthly Quiz",
                            "contest_type": "objective",
                            "total_participants": 1,
                            "leaderboard": [
                                {
                                    "rank": 1,
                                    "position": "🥇 1st Place",
                                    "user_id": 7,
                                    "user_name": "Jane Doe",
                                    "score": 9.0,
                                    "max_score": 10.0,
                                    "percentage": 90.0,
                                    "completed_at": "2024-03-10T12:00:00Z",
                                    "time_spent": 25
                                }
                            ],
                            "top_three": []
                        }
                    )
                ]
            ),
            404: OpenApiResponse(description="Contest not found")
        }
    )
    def get(self, request, contest_id):
        storage = _storage()
        window = ContestWindow.get(contest_id, storage)
        return Response(LeaderboardService.get_contest_leaderboard(window, storage))


@extend_schema(tags=['Leaderboard'])
class ContestResultsView(APIView):
    """Own result for contestants, every result for graders and owners."""
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get contest results",
        description="""
**Contestants:** own result with rank, per-question answers and scores,
correct options for objective questions, essay analysis, and the top five.

**Graders / owners / admins:** all results, including hidden and blocked ones.
""",
        responses={200: dict, 404: OpenApiResponse(description="Contest or result not found")}
    )
    def get(self, request, contest_id):
        storage = _storage()
        window = ContestWindow.get(contest_id, storage)
        return Response(ResultDetailService(storage).get_results(window, request.user))


@extend_schema(tags=['Grade Review'])
class ContestSimilarityView(APIView):
    """Pairwise TF-IDF similarity between essay answers of a contest."""
    permission_classes = [IsAuthenticated, IsGraderOrOwner]

    @extend_schema(summary="Essay similarity report", responses={200: dict, 404: dict})
    def get(self, request, contest_id):
        storage = _storage()
        window = ContestWindow.get(contest_id, storage)
        return Response(SimilarityReport(storage).for_contest(window))


# =============================================================================
# GRADE REVIEW
# =============================================================================

@extend_schema(tags=['Grade Review'])
class GradeSubmissionView(APIView):
    """Manual grade override for one submitted answer."""
    permission_classes = [IsAuthenticated, IsGraderOrOwner]

    @extend_schema(
        summary="Grade a submission",
        description="""
Overwrite the score and comment of a submission. Essay answers are analysed
for AI-generated text; when detected the contestant's result is blocked.
""",
        request=GradeSubmissionSerializer,
        responses={200: dict, 400: dict, 404: dict},
        examples=[
            OpenApiExample(
                'Request Example',
                value={"score": 7.5, "comment": "Good structure, weak conclusion."},
                request_only=True
            )
        ]
    )
    def put(self, request, submission_id):
        serializer = GradeSubmissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        submission, result, ai_detected = ReviewService(_storage()).grade_submission(
            submission_id,
            request.user,
            serializer.validated_data['score'],
            serializer.validated_data.get('comment', '')
        )

        AuditLog.log(
            event_type=AuditLog.EventType.GRADE_OVERRIDE,
            description=f"Grade set to {submission.score} for submission {submission.id}",
            request=request,
            user=request.user,
            metadata={'submission_id': submission.id, 'ai_detected': ai_detected}
        )

        return Response({
            'success': True,
            'message': 'Grade updated',
            'submission_id': submission.id,
            'score': float(submission.score),
            'comment': submission.comment,
            'ai_likelihood': float(submission.ai_likelihood),
            'ai_detected': ai_detected,
            'result': {
                'id': result.id,
                'total_score': float(result.total_score),
                'percentage': float(result.percentage),
                'status': result.status,
            } if result is not None else None
        })


@extend_schema(tags=['Grade Review'])
class ResultStatusView(APIView):
    permission_classes = [IsAuthenticated, IsGraderOrOwner]

    @extend_schema(summary="Set result status", request=ResultStatusSerializer, responses={200: dict, 400: dict, 404: dict})
    def put(self, request, result_id):
        serializer = ResultStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ReviewService(_storage()).set_result_status(result_id, serializer.validated_data['status'])

        AuditLog.log(
            event_type=AuditLog.EventType.RESULT_STATUS,
            description=f"Result {result.id} status set to {result.status}",
            request=request,
            user=request.user,
            metadata={'result_id': result.id, 'status': result.status}
        )
        return Response({'success': True, 'message': 'Status updated', 'result_id': result.id, 'status': result.status})


@extend_schema(tags=['Grade Review'])
class ResultVisibilityView(APIView):
    permission_classes = [IsAuthenticated, IsGraderOrOwner]

    @extend_schema(summary="Show or hide a result", request=ResultVisibilitySerializer, responses={200: dict, 400: dict, 404: dict})
    def put(self, request, result_id):
        serializer = ResultVisibilitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ReviewService(_storage()).set_result_visibility(result_id, serializer.validated_data['visible'])

        AuditLog.log(
            event_type=AuditLog.EventType.RESULT_VISIBILITY,
            description=f"Result {result.id} {'shown' if result.visible else 'hidden'}",
            request=request,
            user=request.user,
            metadata={'result_id': result.id, 'visible': result.visible}
        )
        return Response({'success': True, 'message': 'Visibility updated', 'result_id': result.id, 'visible': result.visible})


@extend_schema(tags=['Grade Review'], summary="List results for review")
class ResultListView(generics.ListAPIView):
    permission_classes = [IsAuthenticated, IsGraderOrOwner]
    serializer_class = ResultSerializer
    filterset_fields = ['contest', 'status', 'visible']
    search_fields = ['user__username', 'contest__title']
    ordering_fields = ['total_score', 'percentage', 'completed_at', 'updated_at']
    ordering = ['-total_score', 'completed_at']

    def get_queryset(self):
        return Result.objects.select_related('user', 'user__profile', 'contest')
