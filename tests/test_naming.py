from apiscan.generator.naming import SCHEMA_NAME, sanitize_schema_name

SAMPLES = [
    "",
    "   ",
    "?",
    "byte[]",
    "Owner",
    "Owner[]",
    "Owner[][]",
    "List<Owner>",
    "Map<String, List<Owner>>",
    "List<Owner>[]",
    "com.example.Owner",
    "Owner$Inner",
    "1stPlace",
    "Weird  Name__",
    "___",
    "-dash",
    "Ünïcode",
]


class TestSanitizeSchemaName:
    def test_special_names(self):
        assert sanitize_schema_name("") == "UnknownSchema"
        assert sanitize_schema_name("?") == "UnknownType"
        assert sanitize_schema_name("byte[]") == "ByteArray"

    def test_arrays_and_generics(self):
        assert sanitize_schema_name("Owner[]") == "OwnerArray"
        assert sanitize_schema_name("Page<Owner>") == "Page"
        assert sanitize_schema_name("List<Owner>[]") == "ListArray"

    def test_invalid_characters(self):
        assert sanitize_schema_name("Owner$Inner") == "Owner_Inner"
        assert sanitize_schema_name("Weird  Name__") == "Weird_Name"
        assert sanitize_schema_name("com.example.Owner") == "com.example.Owner"

    def test_leading_character(self):
        assert sanitize_schema_name("1stPlace") == "Schema_1stPlace"
        assert sanitize_schema_name("-dash") == "Schema_-dash"

    def test_only_underscores(self):
        assert sanitize_schema_name("___") == "UnknownSchema"

    def test_pattern_always_matches(self):
        for sample in SAMPLES:
            assert SCHEMA_NAME.match(sanitize_schema_name(sample)), sample

    def test_idempotent(self):
        for sample in SAMPLES:
            once = sanitize_schema_name(sample)
            assert sanitize_schema_name(once) == once, sample
