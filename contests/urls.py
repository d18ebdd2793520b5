from django.urls import path
from .api.views import (
    # Submissions
    ContestSubmitView,
    # Leaderboard & Results
    ContestLeaderboardView, ContestResultsView, ContestSimilarityView,
    # Grade Review
    GradeSubmissionView, ResultStatusView, ResultVisibilityView, ResultListView,
)

urlpatterns = [
    # ============================================
    # CONTESTS
    # ============================================
    path('contests/<int:contest_id>/submit/', ContestSubmitView.as_view(), name='contest-submit'),
    path('contests/<int:contest_id>/leaderboard/', ContestLeaderboardView.as_view(), name='contest-leaderboard'),
    path('contests/<int:contest_id>/results/', ContestResultsView.as_view(), name='contest-results'),
    path('contests/<int:contest_id>/similarity/', ContestSimilarityView.as_view(), name='contest-similarity'),

    # ============================================
    # GRADE REVIEW
    # ============================================
    path('grading/results/', ResultListView.as_view(), name='result-list'),
    path('grading/results/<int:result_id>/status/', ResultStatusView.as_view(), name='result-status'),
    path('grading/results/<int:result_id>/visibility/', ResultVisibilityView.as_view(), name='result-visibility'),
    path('grading/submissions/<int:submission_id>/grade/', GradeSubmissionView.as_view(), name='grade-submission'),
]
