"""
Blueprint Assembler: draws an exam's question set once.

A blueprint is an ordered list of blocks {subject, difficulty?, count}.
Each block draws ``count`` distinct questions uniformly at random from the
matching pool; blocks are concatenated in blueprint order and numbered
1..N. Either every block is satisfied and the whole assignment is written
in one store call, or nothing is written.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import Any

from loguru import logger

from src.exam.errors import AlreadyAssigned, ExamNotFound, InsufficientQuestions
from src.exam.models import BlueprintBlock
from src.exam.schemas import parse_blueprint
from src.exam.store import SessionStore


class BlueprintAssembler:
    """
    Assigns randomized questions to exams.

    The RNG is injected so a seeded ``random.Random`` makes assembly
    reproducible (tests, audits); the default draws from system entropy.
    """

    def __init__(self, store: SessionStore, rng: random.Random | None = None):
        self._store = store
        self._rng = rng or random.SystemRandom()

    def assign(self, exam_id: int, blueprint: Sequence[BlueprintBlock | dict[str, Any]]) -> list[int]:
        """
        Draw and persist the exam's questions.

        Args:
            exam_id: Exam to assign
            blueprint: Blocks as BlueprintBlock or raw dicts

        Returns:
            Question ids in assignment order (order index = position + 1)

        Raises:
            InvalidBlueprint: empty blueprint or a malformed block
            ExamNotFound: unknown exam
            AlreadyAssigned: exam already has questions
            InsufficientQuestions: a block's pool is too small
        """
        blocks = parse_blueprint(blueprint)

        if self._store.get_exam(exam_id) is None:
            raise ExamNotFound(f"Exam {exam_id} not found")

        if self._store.get_assigned_question_count(exam_id) > 0:
            raise AlreadyAssigned(f"Questions already assigned to exam {exam_id}")

        selected = self.draw(blocks)
        self._store.save_assignment(exam_id, selected)

        logger.info(f"Assigned {len(selected)} questions to exam {exam_id} from {len(blocks)} blueprint blocks")
        return selected

    def draw(self, blocks: Sequence[BlueprintBlock]) -> list[int]:
        """
        Select question ids for every block without writing anything.

        Questions drawn by an earlier block are excluded from later pools so
        overlapping blocks never assign the same question twice.
        """
        selected: list[int] = []
        taken: set[int] = set()

        for block in blocks:
            pool = [
                qid
                for qid in self._store.find_question_ids(block.subject, block.difficulty)
                if qid not in taken
            ]
            if len(pool) < block.count:
                logger.warning(
                    f"Blueprint block {block.subject}/{block.difficulty or 'any'} needs {block.count}, "
                    f"pool has {len(pool)}"
                )
                raise InsufficientQuestions(block.subject, block.count, len(pool))

            drawn = self._rng.sample(pool, block.count)
            selected.extend(drawn)
            taken.update(drawn)

        return selected
