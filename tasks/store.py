"""Document store backed by the Django ORM.

Any object with the same five methods can stand in for ``ModelStore``:

    get_document(database, collection, document_id)
    list_documents(database, collection, predicates) -> DocumentList
    create_document(database, collection, data)
    update_document(database, collection, document_id, data)
    delete_document(database, collection, document_id)

``database`` is a Django database alias; ``collection`` names a model.
"""

import functools
import operator

from django.db.models import Q

from . import predicates as p
from .documents import DocumentList
from .models import Project, Task


def to_q(predicate):
    """Translate one filter predicate into a ``Q`` object."""
    if isinstance(predicate, p.Eq):
        return Q(**{predicate.field: predicate.value})
    if isinstance(predicate, p.IsNull):
        return Q(**{f"{predicate.field}__isnull": True})
    if isinstance(predicate, p.IsNotNull):
        return Q(**{f"{predicate.field}__isnull": False})
    if isinstance(predicate, p.RangeFrom):
        return Q(**{f"{predicate.field}__gte": predicate.value})
    if isinstance(predicate, p.RangeBefore):
        return Q(**{f"{predicate.field}__lt": predicate.value})
    if isinstance(predicate, p.Contains):
        return Q(**{f"{predicate.field}__icontains": predicate.value})
    if isinstance(predicate, p.And):
        return functools.reduce(operator.and_, (to_q(inner) for inner in predicate.predicates))
    raise TypeError(f"Not a filter predicate: {predicate!r}")


def _row_to_document(row):
    # values() rows keep integer pks; documents always carry string ids.
    return {key: str(value) if key == "id" else value for key, value in row.items()}


class ModelStore:
    collections = {
        "tasks": Task,
        "projects": Project,
    }

    def __init__(self, collections=None):
        if collections is not None:
            self.collections = dict(collections)

    def _objects(self, database, collection):
        try:
            model = self.collections[collection]
        except KeyError:
            raise LookupError(f"Unknown collection {collection!r}") from None
        return model.objects.using(database)

    def get_document(self, database, collection, document_id):
        return self._objects(database, collection).get(pk=document_id).as_document()

    def list_documents(self, database, collection, predicates=()):
        qs = self._objects(database, collection).all()
        fields = None
        ordering = []
        count = None
        for predicate in predicates:
            if isinstance(predicate, p.Select):
                fields = predicate.fields
            elif isinstance(predicate, p.OrderBy):
                prefix = "-" if predicate.descending else ""
                ordering.append(f"{prefix}{predicate.field}")
            elif isinstance(predicate, p.Limit):
                count = predicate.count
            else:
                qs = qs.filter(to_q(predicate))

        # The total describes the filtered set, not the returned page.
        total = qs.count()

        qs = qs.order_by(*ordering, "pk")
        if count is not None:
            qs = qs[:count]

        if fields is not None:
            documents = [_row_to_document(row) for row in qs.values(*fields)]
        else:
            documents = [obj.as_document() for obj in qs]
        return DocumentList(documents=documents, total=total)

    def create_document(self, database, collection, data):
        return self._objects(database, collection).create(**data).as_document()

    def update_document(self, database, collection, document_id, data):
        obj = self._objects(database, collection).get(pk=document_id)
        for key, value in data.items():
            setattr(obj, key, value)
        obj.save(using=database, update_fields=[*data, "updated_at"])
        return obj.as_document()

    def delete_document(self, database, collection, document_id):
        self._objects(database, collection).get(pk=document_id).delete()
