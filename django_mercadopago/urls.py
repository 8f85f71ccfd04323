from django.urls import path

from django_mercadopago import views

app_name = "django_mercadopago"

urlpatterns = [
    path("webhook", views.webhook, name="webhook"),
]
