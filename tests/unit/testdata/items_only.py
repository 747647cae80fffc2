class _Provider:
    def items(self, params, settings):
        return [{"title": "only items", "url": "https://example.com/doc"}]


provider = _Provider()
