from django.apps import AppConfig


class CarePlansConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'medinfinite.careplans'
    label = 'careplans'
    verbose_name = 'Care plans'
