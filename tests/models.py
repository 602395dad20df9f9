from linked_orm import Entity, Field, ForeignKey, HasMany, ManyMany, table


@table(name="authors")
class Author(Entity):
    name = Field(str)
    books = HasMany("Book", "author_id")


@table(name="books")
class Book(Entity):
    title = Field(str)
    author_id = ForeignKey("Author")


class Novel(Book):
    genre = Field(str)


@table(name="chapters")
class Chapter(Entity):
    title = Field(str)
    book_id = ForeignKey("Book", back_populates="chapters")


@table(name="groups")
class Group(Entity):
    title = Field(str)
    members = ManyMany("Member", "group_members", extra_fields={"role": str})


@table(name="members")
class Member(Entity):
    name = Field(str)
    age = Field(int)


@table(name="people")
class Person(Entity):
    name = Field(str)
    friends = ManyMany("Person", "person_friends")
