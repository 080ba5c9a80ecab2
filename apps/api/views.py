"""REST API views."""

from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.client import SESSION_TOKEN_KEY, BackendAuthError, BackendError
from apps.core.context_processors import selected_department
from apps.core.timeutils import monday_of, parse_day
from apps.rota.board import BoardError
from apps.rota.services import RotaService
from apps.rota.state import current_board

from .serializers import AssignmentSerializer, PendingCreateSerializer, RosterSerializer, encode


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request: Request) -> Response:
    """Health check endpoint."""
    return Response({"status": "healthy", "service": "rota"})


class BoardStateView(APIView):
    """GET /api/v1/board/?department=&week= - Reconciled board cells."""
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        if not request.session.get(SESSION_TOKEN_KEY):
            return Response({"detail": "No backend session."}, status=status.HTTP_401_UNAUTHORIZED)

        department_id = selected_department(request)
        week_start = monday_of(parse_day(request.query_params.get("week"), timezone.localdate()))
        try:
            board = current_board(request, RotaService.for_request(request), department_id, week_start)
        except BackendAuthError:
            return Response({"detail": "Backend session expired."}, status=status.HTTP_401_UNAUTHORIZED)
        except (BackendError, BoardError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_502_BAD_GATEWAY)

        rows = []
        for row in board.rows():
            rows.append({
                "employeeId": row.employee.id,
                "fullName": row.employee.full_name,
                "cells": [
                    {
                        "key": cell.key,
                        "date": cell.day.isoformat(),
                        "entries": [
                            {
                                "label": entry.label,
                                "color": entry.color,
                                "pending": entry.pending,
                                "swapRequested": entry.swap_requested,
                                "assignment": encode(AssignmentSerializer, entry.assignment) if entry.assignment else None,
                                "pendingCreate": encode(PendingCreateSerializer, entry.create) if entry.create else None,
                            }
                            for entry in cell.entries
                        ],
                    }
                    for cell in row.cells
                ],
            })

        return Response({
            "weekStart": week_start.isoformat(),
            "department": department_id,
            "locked": board.is_locked,
            "roster": encode(RosterSerializer, board.roster) if board.roster else None,
            "pendingCount": len(board.pending),
            "rows": rows,
        })
