"""
Article record used by the seeder and for mapping article rows.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class Article:
    """
    News article.

    Attributes:
        id: Store-assigned primary key (None until inserted)
        title: Headline
        content: Article body
        category: Section name
        author: Byline
        image: Optional image URL
        created: Creation timestamp set by the store
        featured: Whether the article is shown in the featured list
    """

    INSERT_COLUMNS = ('title', 'content', 'category', 'author', 'featured')

    def __init__(
        self,
        title: str,
        content: str,
        category: str,
        author: str,
        featured: bool = False,
        image: Optional[str] = None,
        id: Optional[int] = None,
        created: Optional[datetime] = None
    ):
        self.id = id
        self.title = title
        self.content = content
        self.category = category
        self.author = author
        self.image = image
        self.created = created
        self.featured = featured

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Article':
        """Build an Article from a fetched row."""
        created = row.get('created')
        if isinstance(created, str):
            created = datetime.fromisoformat(created)
        return cls(
            id=row.get('id'),
            title=row['title'],
            content=row['content'],
            category=row['category'],
            author=row['author'],
            image=row.get('image'),
            created=created,
            featured=bool(row.get('featured')),
        )

    def insert_values(self) -> tuple:
        return tuple(getattr(self, column) for column in self.INSERT_COLUMNS)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "author": self.author,
            "image": self.image,
            "created": self.created.isoformat() if self.created else None,
            "featured": self.featured,
        }

    def __repr__(self) -> str:
        return f"<Article(id={self.id}, title={self.title!r}, category={self.category!r})>"
