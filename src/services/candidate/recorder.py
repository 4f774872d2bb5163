from __future__ import annotations

from typing import Iterable

from sqlalchemy.orm import Session

from src.models.database import CandidateAttempt

from .schema import CandidateKey


class CandidateRecorder:
    """Write/read helpers for CandidateAttempt audit data."""

    def __init__(self, db: Session):
        self.db = db

    def record(self, keys: Iterable[CandidateKey]) -> int:
        rows = [
            CandidateAttempt(
                capability=k.capability,
                request_id=k.request_id,
                candidate_index=k.candidate_index,
                shape_index=k.shape_index,
                shape_label=k.shape_label,
                key=k.key,
                path=k.path,
                score=k.score,
                status=k.status,
                error_type=k.error_type,
                error_message=k.error_message,
                latency_ms=k.latency_ms,
            )
            for k in keys
        ]
        if not rows:
            return 0
        try:
            self.db.add_all(rows)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return len(rows)

    def get_candidate_keys(self, request_id: str) -> list[CandidateKey]:
        rows: list[CandidateAttempt] = (
            self.db.query(CandidateAttempt)
            .filter(CandidateAttempt.request_id == request_id)
            .order_by(
                CandidateAttempt.candidate_index.asc(),
                CandidateAttempt.shape_index.asc(),
                CandidateAttempt.created_at.asc(),
            )
            .all()
        )

        result: list[CandidateKey] = []
        for row in rows:
            result.append(
                CandidateKey(
                    capability=row.capability,
                    request_id=row.request_id,
                    candidate_index=int(row.candidate_index or 0),
                    shape_index=row.shape_index,
                    shape_label=row.shape_label,
                    key=row.key,
                    path=row.path,
                    score=row.score,
                    status=str(row.status or "pending"),
                    error_type=row.error_type,
                    error_message=row.error_message,
                    latency_ms=row.latency_ms,
                )
            )

        return result
