from .field import Field


class ForeignKey(Field):
    def __init__(self, target, back_populates=None, target_column="id", nullable=True):
        """
        Args:
            target: Target entity class or string name
            back_populates: Name of the HasMany relation to create on the target class
            target_column: Column on target (usually "id")
            nullable: Whether FK can be NULL
        """
        super().__init__(int, nullable=nullable)

        self._target = target
        self.target_column = target_column
        self.foreign_key = None
        self.back_populates = back_populates
        self.owner_class = None

    def __set_name__(self, owner, name):
        self.name = name
        self.owner_class = owner

    def resolve(self, registry):
        """Convert target -> (table_name, column) and add the reverse relation."""
        from .entity_meta import EntityMeta
        cls = EntityMeta.resolve(self._target)

        self.foreign_key = (cls._table_name, self.target_column)

        if self.back_populates and self.back_populates not in cls._relations:
            from .relationship import HasMany
            relation = HasMany(self.owner_class.__name__, self.name)
            setattr(cls, self.back_populates, relation)
            relation.__set_name__(cls, self.back_populates)
