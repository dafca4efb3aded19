from sqlalchemy import Column, Integer, String, Text

from wishlist.database import Base


class WishORM(Base):
    __tablename__ = "wish-table"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
