from django.urls import path
from .views import WordListCreateView, WordValidateView

urlpatterns = [
    path("words", WordListCreateView.as_view(), name="word-list-create"),
    path("words/validate", WordValidateView.as_view(), name="word-validate"),
]
