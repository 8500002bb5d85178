from django.apps import AppConfig


class TrackerConfig(AppConfig):
    name = 'tracker'
    verbose_name = 'Codeforces roster tracker'
