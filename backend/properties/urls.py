# properties/urls.py
from django.urls import path

from .views import PropertyDetailView, PropertyLeaseListView, PropertyListView

app_name = "properties"

urlpatterns = [
    path("", PropertyListView.as_view(), name="property-list"),
    path("<int:pk>/", PropertyDetailView.as_view(), name="property-detail"),
    path("<int:pk>/leases", PropertyLeaseListView.as_view(), name="property-leases"),
]
