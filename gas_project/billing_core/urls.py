from django.urls import path

from . import views

app_name = "billing_core"

urlpatterns = [
    path("deliveries/", views.deliveries_view, name="deliveries"),
    path("deliveries/<int:entry_id>/", views.delivery_detail_view, name="delivery-detail"),
    path("bills/generate/", views.generate_bills_view, name="generate-bills"),
    path("bills/<int:bill_id>/", views.bill_detail_view, name="bill-detail"),
    path("payments/", views.payments_view, name="payments"),
    path("payments/<int:payment_id>/", views.payment_detail_view, name="payment-detail"),
    path("invoices/", views.invoices_view, name="invoices"),
    path("invoices/<str:invoice_key>/", views.invoice_detail_view, name="invoice-detail"),
]
