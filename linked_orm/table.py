class table:
    """Class decorator naming the table an entity is stored in.

    A subclass without its own ``@table`` shares its parent's table and is
    told apart by the ``class_name`` column.
    """
    def __init__(self, name=''):
        self.name = name

    def __call__(self, cls):
        cls._table_name = self.name
        cls._own_table = True
        return cls
