import math
from typing import Optional, List, Tuple

from sqlalchemy import String, cast, select, func
from sqlalchemy.ext.asyncio import AsyncSession

from libraxpert.core.exceptions import ConflictError, InvalidStateError
from libraxpert.core.logging import get_logger
from libraxpert.db.models import Book, BookStatus

logger = get_logger("services.book")


async def _ensure_isbn_free(db: AsyncSession, isbn: Optional[str], book_id: Optional[str] = None) -> None:
    if not isbn:
        return
    query = select(Book.id).where(Book.isbn == isbn)
    if book_id:
        query = query.where(Book.id != book_id)
    result = await db.execute(query)
    if result.first() is not None:
        raise ConflictError("A book with this ISBN already exists")


async def create_book(db: AsyncSession, data: dict, actor_id: str) -> Book:
    """Create a new book. Every copy starts on the shelf."""
    await _ensure_isbn_free(db, data.get("isbn"))

    data["available_copies"] = data.get("total_copies", 1)
    data["added_by"] = actor_id

    book = Book(**data)
    db.add(book)
    await db.flush()
    await db.refresh(book)

    logger.info(f"Book created: id={book.id} title='{book.title}' by actor={actor_id}")
    return book


async def get_books(
    db: AsyncSession,
    page: int = 1,
    size: int = 20,
    category: Optional[str] = None,
    author: Optional[str] = None,
    available: Optional[bool] = None,
    status: Optional[BookStatus] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Tuple[List[Book], int]:
    """List books with filtering, sorting, and pagination."""
    query = select(Book)
    count_query = select(func.count()).select_from(Book)

    filters = []
    if category:
        # categories is a JSON array; match the quoted element in its text form
        filters.append(cast(Book.categories, String).ilike(f'%"{category}"%'))
    if author:
        filters.append(Book.author.ilike(f"%{author}%"))
    if available is True:
        filters.append(Book.available_copies > 0)
    elif available is False:
        filters.append(Book.available_copies <= 0)
    if status is not None:
        filters.append(Book.status == status)
    if search:
        filters.append(
            Book.title.ilike(f"%{search}%")
            | Book.author.ilike(f"%{search}%")
            | Book.isbn.ilike(f"%{search}%")
        )

    if filters:
        query = query.where(*filters)
        count_query = count_query.where(*filters)

    sort_column = getattr(Book, sort_by, Book.created_at)
    if sort_order == "asc":
        query = query.order_by(sort_column.asc())
    else:
        query = query.order_by(sort_column.desc())

    offset = (page - 1) * size
    query = query.offset(offset).limit(size)

    result = await db.execute(query)
    books = list(result.scalars().all())

    total_result = await db.execute(count_query)
    total = total_result.scalar()

    return books, total


async def get_book_by_id(db: AsyncSession, book_id: str) -> Optional[Book]:
    """Get a single book by ID."""
    result = await db.execute(select(Book).where(Book.id == book_id))
    return result.scalar_one_or_none()


async def update_book(
    db: AsyncSession, book_id: str, data: dict, actor_id: str
) -> Optional[Book]:
    """Update a book. Changing total_copies shifts available_copies by the same delta."""
    book = await get_book_by_id(db, book_id)
    if not book:
        return None

    if data.get("isbn"):
        await _ensure_isbn_free(db, data["isbn"], book_id=book_id)

    if "total_copies" in data and data["total_copies"] is not None:
        diff = data["total_copies"] - book.total_copies
        new_available = book.available_copies + diff
        if new_available < 0:
            raise InvalidStateError("Cannot reduce total copies below the number currently on loan")
        data["available_copies"] = new_available

    for key, value in data.items():
        if value is not None:
            setattr(book, key, value)

    await db.flush()
    await db.refresh(book)

    logger.info(f"Book updated: id={book_id} by actor={actor_id}")
    return book


async def delete_book(db: AsyncSession, book_id: str, actor_id: str) -> bool:
    """Delete a book together with its borrow requests and reservations."""
    book = await get_book_by_id(db, book_id)
    if not book:
        return False

    await db.delete(book)
    await db.flush()

    logger.info(f"Book deleted: id={book_id} by actor={actor_id}")
    return True


def calculate_pages(total: int, size: int) -> int:
    return math.ceil(total / size) if size > 0 else 0
