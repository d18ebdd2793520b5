from rest_framework import serializers
from contests.models import Result
from contests.services.leaderboard import display_name


class GradeSubmissionSerializer(serializers.Serializer):
    score = serializers.DecimalField(max_digits=7, decimal_places=2)
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class ResultStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Result.Status.choices)


class ResultVisibilitySerializer(serializers.Serializer):
    visible = serializers.JSONField()

    def validate_visible(self, value):
        # "true", 1 and friends are rejected
        if not isinstance(value, bool):
            raise serializers.ValidationError("visible must be a boolean value (true or false).")
        return value


class ResultSerializer(serializers.ModelSerializer):
    user_name = serializers.SerializerMethodField()
    contest_title = serializers.CharField(source='contest.title', read_only=True)

    class Meta:
        model = Result
        fields = [
            'id', 'user', 'user_name', 'contest', 'contest_title', 'total_score',
            'max_score', 'percentage', 'completed_at', 'time_spent', 'visible',
            'status', 'version', 'updated_at'
        ]
        read_only_fields = fields

    def get_user_name(self, obj) -> str:
        return display_name(obj.user)
