import logging

from .errors import ConfigurationError, UnknownType
from .field import Field

logger = logging.getLogger(__name__)


class EntityMeta(type):
    """Collects Field descriptors and registers every entity class by name.

    The registry doubles as the factory used to turn stored rows back into
    typed entities (see ``instantiate``).
    """
    registry = {}

    def __new__(meta, name, bases, attrs):
        fields = {}
        # Inherited fields first, so subclasses keep id/class_name and can override.
        for base in reversed(bases):
            fields.update(getattr(base, "_fields", {}))

        for key, val in list(attrs.items()):
            if isinstance(val, Field):
                val.name = key
                fields[key] = val

        attrs["_fields"] = fields
        attrs["_own_table"] = "_table_name" in attrs
        relations = {}
        for base in reversed(bases):
            relations.update(getattr(base, "_relations", {}))
        attrs["_relations"] = relations

        cls = super().__new__(meta, name, bases, attrs)

        if name != "Entity":
            EntityMeta.registry[name] = cls

        return cls

    @classmethod
    def resolve(meta, target):
        """Resolve a class, a registered class name, or a zero-arg callable to a class."""
        if isinstance(target, str):
            try:
                return meta.registry[target]
            except KeyError:
                available = ", ".join(meta.registry.keys())
                raise ConfigurationError(
                    f"Unknown entity '{target}'. Available: {available}"
                ) from None
        if isinstance(target, type):
            return target
        if callable(target):
            return target()
        raise ConfigurationError(f"Invalid entity reference: {target!r}")

    @classmethod
    def instantiate(meta, type_name, row, fallback=None):
        """Build the entity for ``row`` using the class registered as ``type_name``.

        ``fallback`` is used when the name is not registered; without one the
        row cannot be projected and UnknownType is raised.
        """
        cls = meta.registry.get(type_name) if type_name else None
        if cls is None:
            if fallback is None:
                raise UnknownType(
                    f"Bad record class '{type_name}' and no fallback class given"
                )
            logger.debug("record class %r not registered, using %s", type_name, fallback.__name__)
            cls = fallback
        return cls.from_row(row)

    @classmethod
    def project(meta, row, fallback=None):
        """Build the entity for a row, reading the class from its discriminator.

        ``record_class_name`` wins when present and non-empty, otherwise
        ``class_name`` is used.
        """
        type_name = row.get("record_class_name") or row.get("class_name")
        return meta.instantiate(type_name, row, fallback)
