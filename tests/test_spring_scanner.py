from pathlib import Path

import pytest

from apiscan.parser.spring import SpringScanner, find_source_roots, is_dto_type, unwrap_response_type

FIXTURES = Path(__file__).parent / "fixtures"
PETCLINIC = FIXTURES / "petclinic"


def _project(tmp_path: Path, files: dict[str, str]) -> Path:
    root = tmp_path / "project"
    src = root / "src" / "main" / "java" / "com" / "example"
    for name, text in files.items():
        path = src / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    return root


def _scan(tmp_path: Path, files: dict[str, str]):
    return SpringScanner().scan(_project(tmp_path, files))


def _by_route(result) -> dict:
    return {(op.http_method, op.path): op for op in result.operations}


@pytest.fixture(scope="module")
def petclinic():
    return SpringScanner().scan(PETCLINIC)


class TestPetclinicScan:
    def test_counts(self, petclinic):
        assert petclinic.framework == "Spring"
        assert petclinic.files_scanned == 11
        assert petclinic.errors == []
        assert len(petclinic.operations) == 14

    def test_annotated_interface_scanned_on_its_own(self, petclinic):
        routes = _by_route(petclinic)
        listing = routes[("GET", "/owners")]
        assert listing.controller_class == "OwnersApi"
        assert listing.produces == ["application/json"]

    def test_controller_uses_interface_metadata(self, petclinic):
        routes = _by_route(petclinic)
        get_owner = routes[("GET", "/api/owners/{ownerId}")]
        assert get_owner.controller_class == "OwnerRestController"
        assert get_owner.operation_id == "OwnerRestController_getOwner"
        assert [(p.name, p.location, p.type) for p in get_owner.parameters] == [("ownerId", "path", "Integer")]
        assert not get_owner.inferred

        add_owner = routes[("POST", "/api/owners")]
        assert add_owner.request_body.content["application/json"].schema_type == "OwnerDto"
        assert add_owner.consumes == ["application/json"]

        listing = routes[("GET", "/api/owners")]
        assert listing.parameters[0].name == "lastName"
        assert listing.parameters[0].required is False
        assert listing.responses["200"].content["application/json"].schema_type == "List<OwnerDto>"

    def test_inferred_operations_when_interface_missing(self, petclinic):
        inferred = [op for op in petclinic.operations if op.controller_class == "PetRestController"]
        assert {(op.http_method, op.path) for op in inferred} == {("GET", "/api/pets"), ("GET", "/api/pets/{petId}")}
        assert all(op.inferred for op in inferred)
        get_pet = next(op for op in inferred if op.method_name == "getPet")
        assert [(p.name, p.location, p.required) for p in get_pet.parameters] == [("petId", "path", True)]

    def test_path_aliases_and_constants(self, petclinic):
        listings = [op for op in petclinic.operations if op.method_name == "listVisits"]
        assert [op.path for op in listings] == ["/api/visits", "/api/visits/all"]
        assert [op.operation_id for op in listings] == ["VisitController_listVisits", "VisitController_listVisits_get"]
        assert listings[0].parameters[0].name == "page"
        assert listings[0].parameters[0].required is False
        assert listings[0].description == "Lists every visit."

    def test_concatenated_constant_path(self, petclinic):
        routes = _by_route(petclinic)
        delete = routes[("DELETE", "/api/visits/{visitId}")]
        assert delete.deprecated is True
        assert delete.responses["200"].content == {}
        assert ("GET", "/api/visits/{visitId}") in routes

    def test_multipart_upload(self, petclinic):
        upload = _by_route(petclinic)[("POST", "/api/visits/{visitId}/attachments")]
        assert upload.request_body is None
        assert upload.consumes == ["multipart/form-data"]
        files = [p for p in upload.parameters if p.location == "formData"]
        assert [(p.name, p.type, p.required) for p in files] == [("file", "MultipartFile", True)]

    def test_unmapped_methods_skipped(self, petclinic):
        names = {op.method_name for op in petclinic.operations}
        assert "audit" not in names
        assert "toString" not in names

    def test_every_template_variable_bound_once(self, petclinic):
        for op in petclinic.operations:
            names = [p.name for p in op.path_parameters()]
            assert sorted(names) == sorted(set(names))
            for name in names:
                assert "{" + name + "}" in op.path


class TestParameters:
    def test_query_param_named_like_path_variable(self, tmp_path):
        result = _scan(tmp_path, {"OwnerController.java": """
            @RestController
            public class OwnerController {
                @GetMapping("/api/owners/{ownerId}")
                public Owner getOwner(@RequestParam Integer ownerId) { return null; }
            }
        """})
        op = result.operations[0]
        assert [(p.name, p.location, p.required) for p in op.parameters] == [("ownerId", "path", True)]

    def test_platform_and_unmodeled_parameters_dropped(self, tmp_path):
        result = _scan(tmp_path, {"SearchController.java": """
            @RestController
            public class SearchController {
                @GetMapping("/search")
                public List<Hit> search(@RequestParam("q") String query, Principal principal,
                                        HttpServletRequest request, @CookieValue("session") String session,
                                        @RequestHeader(value = "X-Trace", required = false) String trace) {
                    return null;
                }
            }
        """})
        params = result.operations[0].parameters
        assert [(p.name, p.location, p.required) for p in params] == [("q", "query", True), ("X-Trace", "header", False)]

    def test_default_value_makes_parameter_optional(self, tmp_path):
        result = _scan(tmp_path, {"FeedController.java": """
            @RestController
            public class FeedController {
                @GetMapping("/feed")
                public List<Post> feed(@RequestParam(defaultValue = "20") int limit,
                                       @RequestHeader(name = "X-Locale", defaultValue = "en") String locale) {
                    return null;
                }
            }
        """})
        params = result.operations[0].parameters
        assert [(p.name, p.location, p.required) for p in params] == [("limit", "query", False), ("X-Locale", "header", False)]

    def test_unannotated_simple_param_is_optional_query(self, tmp_path):
        result = _scan(tmp_path, {"PageController.java": """
            @RestController
            public class PageController {
                @GetMapping("/pages")
                public List<Page> pages(int size, String sort) { return null; }
            }
        """})
        params = result.operations[0].parameters
        assert [(p.name, p.location, p.required) for p in params] == [("size", "query", False), ("sort", "query", False)]

    def test_missing_path_variable_synthesized(self, tmp_path):
        result = _scan(tmp_path, {"FileController.java": """
            @RestController
            public class FileController {
                @GetMapping("/files/{bucket}/{name:.+}")
                public byte[] download(@PathVariable String name) { return null; }
            }
        """})
        params = {p.name: p for p in result.operations[0].parameters}
        assert set(params) == {"bucket", "name"}
        assert params["bucket"].type == "String"
        assert params["bucket"].required is True


class TestRequestBody:
    def test_unannotated_dto_on_post(self, tmp_path):
        result = _scan(tmp_path, {"OrderController.java": """
            @RestController
            @RequestMapping("/orders")
            public class OrderController {
                @PostMapping
                public OrderResponse create(OrderRequest order) { return null; }

                @GetMapping
                public List<OrderResponse> list(OrderFilter filter) { return null; }
            }
        """})
        routes = _by_route(result)
        create = routes[("POST", "/orders")]
        assert create.request_body.content["application/json"].schema_type == "OrderRequest"
        assert create.request_body.required is True
        assert create.parameters == []
        assert routes[("GET", "/orders")].request_body is None

    def test_optional_request_body(self, tmp_path):
        result = _scan(tmp_path, {"NoteController.java": """
            @RestController
            public class NoteController {
                @PutMapping("/notes/{id}")
                public void update(@PathVariable Long id, @RequestBody(required = false) NoteDto note) { }
            }
        """})
        assert result.operations[0].request_body.required is False


class TestMappings:
    def test_request_mapping_method(self, tmp_path):
        result = _scan(tmp_path, {"LegacyController.java": """
            @Controller
            @RequestMapping(path = "/legacy")
            public class LegacyController {
                @RequestMapping(value = "/items", method = RequestMethod.PUT)
                public void replace() { }

                @RequestMapping("/ping")
                public String ping() { return "pong"; }
            }
        """})
        assert set(_by_route(result)) == {("PUT", "/legacy/items"), ("GET", "/legacy/ping")}

    def test_request_mapping_with_several_methods(self, tmp_path):
        result = _scan(tmp_path, {"SyncController.java": """
            @RestController
            public class SyncController {
                @RequestMapping(value = "/sync", method = {RequestMethod.GET, RequestMethod.POST})
                public String sync() { return "ok"; }
            }
        """})
        routes = _by_route(result)
        assert set(routes) == {("GET", "/sync"), ("POST", "/sync")}
        assert routes[("GET", "/sync")].operation_id == "SyncController_sync"
        assert routes[("POST", "/sync")].operation_id == "SyncController_sync_post"

    def test_media_type_members(self, tmp_path):
        result = _scan(tmp_path, {"ReportController.java": """
            @RestController
            public class ReportController {
                @GetMapping(value = "/reports", produces = {MediaType.APPLICATION_JSON_VALUE, MediaType.TEXT_PLAIN_VALUE})
                public List<String> reports() { return null; }

                @PostMapping(value = "/reports", consumes = org.springframework.http.MediaType.APPLICATION_XML_VALUE,
                             produces = ReportFormats.CSV)
                public String upload(@RequestBody String report) { return null; }
            }
        """})
        routes = _by_route(result)
        assert routes[("GET", "/reports")].produces == ["application/json", "text/plain"]
        assert routes[("POST", "/reports")].consumes == ["application/xml"]
        assert routes[("POST", "/reports")].produces == []

    def test_documentation_annotations(self, tmp_path):
        result = _scan(tmp_path, {"TagController.java": """
            @RestController
            @Tag(name = "Tagging")
            public class TagController {
                @Operation(summary = "Find tags", description = "Searches tags", tags = {"search"})
                @GetMapping("/tags")
                public List<String> find() { return null; }

                @GetMapping("/tags/count")
                public long count() { return 0; }
            }
        """})
        routes = _by_route(result)
        find = routes[("GET", "/tags")]
        assert find.summary == "Find tags"
        assert find.description == "Searches tags"
        assert find.tags == ["search"]
        assert routes[("GET", "/tags/count")].tags == ["Tagging"]

    def test_local_interface_in_same_file(self, tmp_path):
        result = _scan(tmp_path, {"HealthController.java": """
            @RestController
            @RequestMapping("/internal")
            public class HealthController implements HealthApi {
                @Override
                public String health() { return "ok"; }
            }

            interface HealthApi {
                @GetMapping("/health")
                String health();
            }
        """})
        routes = _by_route(result)
        assert ("GET", "/internal/health") in routes
        assert routes[("GET", "/internal/health")].inferred is False

    def test_annotated_method_not_inferred_again(self, tmp_path):
        result = _scan(tmp_path, {"UserController.java": """
            @RestController
            public class UserController implements UsersApi {
                @Override
                @GetMapping("/members/{userId}")
                public User getUser(@PathVariable Integer userId) { return null; }

                @Override
                public void deleteUser(Integer userId) { }
            }
        """})
        routes = _by_route(result)
        assert set(routes) == {("GET", "/members/{userId}"), ("DELETE", "/users/{userId}")}
        assert routes[("DELETE", "/users/{userId}")].inferred is True
        assert routes[("GET", "/members/{userId}")].inferred is False


class TestScanEdgeCases:
    def test_no_annotations_no_operations(self, tmp_path):
        result = _scan(tmp_path, {"Util.java": "public class Util { public static int twice(int x) { return 2 * x; } }"})
        assert result.operations == []
        assert result.errors == []
        assert result.files_scanned == 1

    def test_parse_error_recorded_and_scan_continues(self, tmp_path):
        result = _scan(tmp_path, {
            "Broken.java": "public class Broken { void x( }",
            "PingController.java": """
                @RestController
                public class PingController {
                    @GetMapping("/ping")
                    public String ping() { return "pong"; }
                }
            """,
        })
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Error scanning")
        assert "Broken.java" in result.errors[0]
        assert [op.path for op in result.operations] == ["/ping"]

    def test_missing_source_directory(self, tmp_path):
        result = SpringScanner().scan(tmp_path)
        assert result.operations == []
        assert result.files_scanned == 0

    def test_child_module_sources(self, tmp_path):
        root = tmp_path / "project"
        web = root / "web" / "src" / "main" / "java"
        web.mkdir(parents=True)
        (root / "pom.xml").write_text("<project/>")
        (web / "PingController.java").write_text(
            '@RestController public class PingController { @GetMapping("/ping") String ping() { return ""; } }'
        )
        assert find_source_roots(root) == [web]
        assert [op.path for op in SpringScanner().scan(root).operations] == ["/ping"]


class TestTypeHelpers:
    def test_unwrap_response_type(self):
        assert unwrap_response_type("ResponseEntity<OwnerDto>") == "OwnerDto"
        assert unwrap_response_type("Mono<List<OwnerDto>>") == "List<OwnerDto>"
        assert unwrap_response_type("ResponseEntity<Void>") is None
        assert unwrap_response_type("ResponseEntity<?>") == "Object"
        assert unwrap_response_type("ResponseEntity<? extends Owner>") == "Owner"
        assert unwrap_response_type("ResponseEntity") == "Object"
        assert unwrap_response_type("Owner") == "Owner"

    def test_is_dto_type(self):
        assert is_dto_type("OwnerDto")
        assert is_dto_type("Owner")
        assert not is_dto_type("String")
        assert not is_dto_type("MultipartFile")
        assert not is_dto_type("Principal")
        assert not is_dto_type("java.util.Date")
