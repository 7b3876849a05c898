import logging
import uuid
from typing import List

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from revision_planner.data.schemas import Problem, ProblemRecord
from revision_planner.errors import DatabaseException, ResourceNotFoundException
from revision_planner.utils.time import utcnow

problem_logger = logging.getLogger("db").getChild("problem_repository")


async def list_problems_for_owner(db: AsyncSession, owner_id: uuid.UUID) -> List[Problem]:
    """Returns every problem of an owner, most recently solved first."""
    try:
        result = await db.exec(
            select(Problem)
            .where(Problem.owner_id == owner_id)
            .order_by(Problem.last_solved_at.desc())
        )
        problems = list(result.all())
        problem_logger.debug(f"Loaded {len(problems)} problems for owner {owner_id}")
        return problems
    except SQLAlchemyError as e:
        problem_logger.error(f"Failed to list problems for owner {owner_id}: {str(e)}")
        raise DatabaseException(detail="Failed to load revision problems.")


async def create_problem_in_db(db: AsyncSession, record: ProblemRecord) -> Problem:
    try:
        problem = Problem(**record.model_dump())
        db.add(problem)
        await db.commit()
        await db.refresh(problem)
        problem_logger.info(f"Created problem {problem.id} for owner {problem.owner_id}")
        return problem
    except SQLAlchemyError as e:
        problem_logger.error(f"Failed to create problem {record.id}: {str(e)}")
        await db.rollback()
        raise DatabaseException(detail="Failed to add the problem.")


async def delete_problem_from_db(
    db: AsyncSession, owner_id: uuid.UUID, problem_id: uuid.UUID
) -> None:
    """Deletes a single record. Other members of its lineage are left alone."""
    try:
        result = await db.execute(
            delete(Problem).where(Problem.id == problem_id, Problem.owner_id == owner_id)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise ResourceNotFoundException(detail=f"Problem {problem_id} not found")
        await db.commit()
        problem_logger.info(f"Deleted problem {problem_id} for owner {owner_id}")
    except SQLAlchemyError as e:
        problem_logger.error(f"Failed to delete problem {problem_id}: {str(e)}")
        await db.rollback()
        raise DatabaseException(detail="Failed to delete the problem.")


async def create_revision_in_db(
    db: AsyncSession, original_id: uuid.UUID, revision: ProblemRecord
) -> Problem:
    """
    Inserts a revision row and increments the original's solve count in one
    transaction. The original's last_solved_at is not touched.
    """
    try:
        revision_row = Problem(**revision.model_dump())
        db.add(revision_row)
        result = await db.execute(
            update(Problem)
            .where(Problem.id == original_id, Problem.owner_id == revision.owner_id)
            .values(solve_count=Problem.solve_count + 1, updated_at=utcnow())
        )
        if result.rowcount == 0:
            await db.rollback()
            raise ResourceNotFoundException(detail="Original problem not found.")
        await db.commit()
        await db.refresh(revision_row)
        problem_logger.info(f"Created revision {revision_row.id} of problem {original_id}")
        return revision_row
    except SQLAlchemyError as e:
        problem_logger.error(f"Failed to create revision of {original_id}: {str(e)}")
        await db.rollback()
        raise DatabaseException(detail="Operation failed.")


async def undo_revision_in_db(
    db: AsyncSession, owner_id: uuid.UUID, revision_id: uuid.UUID, original_id: uuid.UUID
) -> None:
    """
    Deletes a revision row and decrements its original's solve count in one
    transaction. A missing original (deleted earlier) only skips the decrement.
    """
    try:
        result = await db.execute(
            delete(Problem).where(
                Problem.id == revision_id,
                Problem.owner_id == owner_id,
                Problem.original_problem_id == original_id,
            )
        )
        if result.rowcount == 0:
            await db.rollback()
            raise ResourceNotFoundException(detail="Revision to undo not found.")
        await db.execute(
            update(Problem)
            .where(
                Problem.id == original_id,
                Problem.owner_id == owner_id,
                Problem.solve_count > 0,
            )
            .values(solve_count=Problem.solve_count - 1, updated_at=utcnow())
        )
        await db.commit()
        problem_logger.info(f"Undid revision {revision_id} of problem {original_id}")
    except SQLAlchemyError as e:
        problem_logger.error(f"Failed to undo revision {revision_id}: {str(e)}")
        await db.rollback()
        raise DatabaseException(detail="Failed to undo revision.")
