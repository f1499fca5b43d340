from sqlalchemy import Column, Integer, Text, Float, CheckConstraint
from apps.core.db import Base


class Subject(Base):
    """Searchable catalog entry (a named place with category and city)."""
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(Text, nullable=False)
    type = Column(Text, nullable=False)  # category label (cafe, steakhouse, ...)
    location = Column(Text, nullable=True)  # street address / neighbourhood
    city = Column(Text, nullable=True)
    average_rating = Column(Float, CheckConstraint("average_rating >= 0"), default=0.0)
    review_count = Column(Integer, CheckConstraint("review_count >= 0"), default=0)

    def __repr__(self) -> str:
        return f"<Subject id={self.id} name={self.name!r} type={self.type!r} city={self.city!r}>"
