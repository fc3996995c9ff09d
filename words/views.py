# words/views.py
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import BatchConflict, InvalidBatchSize, StoreUnavailable, WordTooLong
from .identity import SignedCookieAuthentication
from .serializers import WordListQuerySerializer, WordSerializer
from .services import ConflictReport, list_words, submit_batch, validate_batch
from .store import WordStore, ensure_unique_index_once

logger = logging.getLogger(__name__)


def _count_mismatch(e: InvalidBatchSize) -> Response:
    return Response({
        'ok': False,
        'reason': 'count-mismatch',
        'count': e.count,
        'detail': e.message,
        'conflicts': ConflictReport().as_dict(),
    }, status=status.HTTP_400_BAD_REQUEST)


def _too_long(e: WordTooLong) -> Response:
    return Response({
        'ok': False,
        'reason': 'word-too-long',
        'max_length': e.max_length,
        'words': e.words,
        'detail': e.message,
        'conflicts': ConflictReport().as_dict(),
    }, status=status.HTTP_400_BAD_REQUEST)


def _conflicts(e: BatchConflict, status_code: int) -> Response:
    return Response({
        'ok': False,
        'reason': 'conflicts',
        'detail': e.message,
        'conflicts': e.report.as_dict(),
    }, status=status_code)


class WordsAPIView(APIView):
    """Base for the word endpoints: cookie identity required, unique index ensured lazily."""
    authentication_classes = [SignedCookieAuthentication]
    permission_classes = [IsAuthenticated]
    store_class = WordStore

    def initial(self, request, *args, **kwargs):
        ensure_unique_index_once(self.get_store())
        super().initial(request, *args, **kwargs)

    def get_store(self) -> WordStore:
        return self.store_class()


class WordListCreateView(WordsAPIView):
    """
    GET  /api/words?sort=date-desc|date-asc|alpha-asc|alpha-desc&from=&to=&q=&tz=
    POST /api/words {"words": [...10 strings...]} (409 on conflicts, including races)
    """
    def get(self, request):
        qp = request.query_params
        params = WordListQuerySerializer(data={
            'sort': qp.get('sort', 'date-desc'),
            'date_from': qp.get('from', ''),
            'date_to': qp.get('to', ''),
            'q': qp.get('q', ''),
            'tz': qp.get('tz', ''),
        })
        if not params.is_valid():
            return Response(params.errors, status=400)
        p = params.validated_data

        try:
            listing = list_words(
                request.user,
                date_from=p['date_from'] or None,
                date_to=p['date_to'] or None,
                q=p['q'],
                sort=p['sort'],
                tz=p['tz'] or None,
                store=self.get_store(),
            )
        except ValueError as e:
            return Response({'detail': str(e)}, status=400)
        except StoreUnavailable as e:
            logger.exception("Fetch failed: %s", e.message)
            return Response({'detail': 'Fetch failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        context = {'owners': listing.owners}
        return Response({
            'mine': WordSerializer(listing.mine, many=True, context=context).data,
            'all': WordSerializer(listing.all, many=True, context=context).data,
        }, status=status.HTTP_200_OK)

    def post(self, request):
        body = request.data or {}
        words = body.get('words') if hasattr(body, 'get') else None
        try:
            added = submit_batch(request.user, words, store=self.get_store())
        except InvalidBatchSize as e:
            return _count_mismatch(e)
        except WordTooLong as e:
            return _too_long(e)
        except BatchConflict as e:
            # RaceConflict lands here too, already logged and re-queried by submit_batch.
            return _conflicts(e, status.HTTP_409_CONFLICT)
        except StoreUnavailable as e:
            logger.exception("Insert failed: %s", e.message)
            return Response({'detail': 'Insert failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({'added': added}, status=status.HTTP_201_CREATED)


class WordValidateView(WordsAPIView):
    """POST /api/words/validate: conflict report only, nothing is written."""
    def post(self, request):
        body = request.data or {}
        words = body.get('words') if hasattr(body, 'get') else None
        try:
            report = validate_batch(words, store=self.get_store())
        except InvalidBatchSize as e:
            return _count_mismatch(e)
        except WordTooLong as e:
            return _too_long(e)
        except StoreUnavailable as e:
            logger.exception("Validation failed: %s", e.message)
            return Response({'detail': 'Validation failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        if not report.is_empty:
            return Response({
                'ok': False,
                'reason': 'conflicts',
                'conflicts': report.as_dict(),
            }, status=status.HTTP_200_OK)
        return Response({
            'ok': True,
            'message': 'No conflicts',
            'conflicts': report.as_dict(),
        }, status=status.HTTP_200_OK)


class HealthView(APIView):
    """GET /health"""
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({'ok': True})
