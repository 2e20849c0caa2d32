from bundle_access.repositories.query_utils import apply_where, first_doc


class _FilterCapableQuery:
    def __init__(self):
        self.kwargs = None

    def where(self, *args, **kwargs):
        self.kwargs = kwargs
        return self


class _PositionalOnlyQuery:
    def __init__(self):
        self.args = None

    def where(self, *args, **kwargs):
        if "filter" in kwargs:
            raise TypeError("filter keyword unsupported")
        self.args = args
        return self


class _LimitedQuery:
    def __init__(self, docs):
        self.docs = docs
        self.limit_count = None

    def limit(self, count):
        self.limit_count = count
        return self

    def stream(self):
        return iter(self.docs[:self.limit_count])


def test_apply_where_prefers_field_filter_keyword():
    query = _FilterCapableQuery()

    result = apply_where(query, "productBoxId", "==", "b123")

    assert result is query
    assert query.kwargs is not None
    assert "filter" in query.kwargs


def test_apply_where_falls_back_to_positional_for_simple_test_doubles():
    query = _PositionalOnlyQuery()

    result = apply_where(query, "productBoxId", "==", "b123")

    assert result is query
    assert query.args == ("productBoxId", "==", "b123")


def test_first_doc_limits_to_one_and_returns_it():
    query = _LimitedQuery(["doc-a", "doc-b"])

    assert first_doc(query) == "doc-a"
    assert query.limit_count == 1


def test_first_doc_returns_none_for_empty_result():
    assert first_doc(_LimitedQuery([])) is None
