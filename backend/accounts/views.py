# accounts/views.py
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounting.api import success
from accounting.exceptions import NotFoundError
from .models import CompanyMembership
from .serializers import (
    CompanySerializer,
    EmailTokenObtainPairSerializer,
    MembershipSerializer,
    SwitchCompanySerializer,
    UserSerializer,
)


class LoginView(generics.GenericAPIView):
    serializer_class = EmailTokenObtainPairSerializer
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(serializer.validated_data, status=status.HTTP_200_OK)


class MeView(APIView):
    """GET /api/auth/me -> current user, active company and memberships."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        user = request.user
        memberships = CompanyMembership.objects.filter(
            user=user, is_active=True,
        ).select_related("company").prefetch_related("permissions")
        return success({
            "user": UserSerializer(user).data,
            "active_company": CompanySerializer(user.active_company).data if user.active_company else None,
            "memberships": MembershipSerializer(memberships, many=True).data,
        })


class SwitchCompanyView(APIView):
    """POST /api/auth/switch-company -> set the active company."""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = SwitchCompanySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        membership = CompanyMembership.objects.select_related("company").filter(
            user=request.user,
            company_id=serializer.validated_data["company_id"],
            is_active=True,
        ).first()
        if membership is None:
            raise NotFoundError("Company not found.")

        request.user.active_company = membership.company
        request.user.save(update_fields=["active_company"])
        return success(CompanySerializer(membership.company).data)
