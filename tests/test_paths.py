from apiscan.parser.base import Parameter
from apiscan.parser.paths import (
    OperationIdRegistry,
    combine_paths,
    normalize_path,
    path_suffix,
    reconcile_path_parameters,
    template_variables,
)


class TestCombinePaths:
    def test_joins_with_single_slash(self):
        assert combine_paths("/api/", "/owners") == "/api/owners"
        assert combine_paths("/api", "owners") == "/api/owners"

    def test_empty_parts(self):
        assert combine_paths("", "") == "/"
        assert combine_paths("/api", "") == "/api"
        assert combine_paths("", "/owners") == "/owners"

    def test_strips_quotes(self):
        assert combine_paths('"/api"', '"/owners"') == "/api/owners"


class TestNormalizePath:
    def test_leading_slash(self):
        assert normalize_path("owners") == "/owners"
        assert normalize_path("") == "/"

    def test_regex_suffix_removed(self):
        assert normalize_path("/owners/{id:\\d+}") == "/owners/{id}"


class TestTemplateVariables:
    def test_in_order_and_unique(self):
        assert template_variables("/owners/{ownerId}/pets/{petId}/{ownerId}") == ["ownerId", "petId"]

    def test_regex_suffix(self):
        assert template_variables("/files/{name:.+}") == ["name"]


class TestReconcilePathParameters:
    def test_query_param_named_like_variable_becomes_path(self):
        params = [Parameter(name="ownerId", location="query", type="Integer")]
        result = reconcile_path_parameters("/api/owners/{ownerId}", params)
        assert len(result) == 1
        assert result[0].location == "path"
        assert result[0].required is True
        assert result[0].type == "Integer"

    def test_duplicates_folded(self):
        params = [
            Parameter(name="ownerId", location="path", type="Integer", required=True),
            Parameter(name="ownerId", location="query", type="String"),
        ]
        result = reconcile_path_parameters("/owners/{ownerId}", params)
        assert [(p.name, p.location, p.type) for p in result] == [("ownerId", "path", "Integer")]

    def test_missing_variable_synthesized(self):
        result = reconcile_path_parameters("/owners/{ownerId}/pets/{petId}", [
            Parameter(name="petId", location="path", type="Integer", required=True),
        ])
        by_name = {p.name: p for p in result}
        assert set(by_name) == {"ownerId", "petId"}
        assert by_name["ownerId"].type == "String"
        assert by_name["ownerId"].required is True

    def test_orphan_path_param_dropped(self):
        result = reconcile_path_parameters("/owners", [
            Parameter(name="id", location="path", required=True),
            Parameter(name="page", location="query"),
        ])
        assert [p.name for p in result] == ["page"]

    def test_input_not_mutated(self):
        param = Parameter(name="ownerId", location="query")
        reconcile_path_parameters("/owners/{ownerId}", [param])
        assert param.location == "query"


class TestOperationIdRegistry:
    def test_first_candidate_free(self):
        registry = OperationIdRegistry()
        assert registry.allocate("Owner_get", "GET", "/owners") == "Owner_get"
        assert "Owner_get" in registry

    def test_disambiguation_order(self):
        registry = OperationIdRegistry()
        ids = [registry.allocate("OwnerController_list", "GET", "/api/owners") for _ in range(4)]
        assert ids == [
            "OwnerController_list",
            "OwnerController_list_get",
            "OwnerController_list_api_owners",
            "OwnerController_list_1",
        ]
        assert registry.allocate("OwnerController_list", "GET", "/api/owners") == "OwnerController_list_2"

    def test_path_suffix(self):
        assert path_suffix("/api/owners/{ownerId}") == "api_owners_ownerId"
        assert path_suffix("/") == ""
