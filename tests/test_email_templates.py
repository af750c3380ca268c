from backoffice.domain.email_templates.rendering import (
    extract_template_variables,
    render_template,
    template_warnings,
    validate_template_syntax,
)

TEMPLATE_HTML = "<html><body style='max-width:600px'>Hi {{ firstName }}, {{ amount | currency }} due</body></html>"


class TestRendering:
    def test_filters(self):
        rendered = render_template(
            "Hi {{ name }}, you owe {{ amount | currency }} by {{ due | date }}",
            {"name": "Jo", "amount": 875, "due": "2026-02-02"},
        )
        assert rendered == "Hi Jo, you owe £875.00 by Feb 2, 2026"

    def test_conditionals_and_loops(self):
        rendered = render_template(
            "{% for term in terms %}{{ term }};{% endfor %}{% if paid %} paid{% endif %}",
            {"terms": ["P1", "P2"], "paid": True},
        )
        assert rendered == "P1;P2; paid"

    def test_broken_template_returns_original(self):
        assert render_template("Hi {{ name ", {"name": "Jo"}) == "Hi {{ name "

    def test_extract_variables_skips_filters_and_calls(self):
        content = "{{ firstName }} {{ amount | currency }} {{ fmt(x) }} {{ lastName }} {{ firstName }} {{ true }}"
        assert extract_template_variables(content) == ["firstName", "lastName"]

    def test_validate_syntax(self):
        assert validate_template_syntax("{% if x %}yes{% endif %}") == (True, [])
        is_valid, errors = validate_template_syntax("{% if x %}yes")
        assert not is_valid
        assert errors[0].startswith("Template syntax error")

    def test_mismatched_tags(self):
        is_valid, errors = validate_template_syntax("{{ a }")
        assert not is_valid
        assert any("Mismatched variable tags" in error for error in errors)

    def test_warnings(self):
        assert template_warnings(TEMPLATE_HTML) == []
        assert "Content should include a <body> tag" in template_warnings("<html>hi</html>")


class TestTemplateApi:
    def create(self, client, **overrides):
        payload = {"name": "Payment Reminder", "subject": "Reminder for {{ firstName }}", "content": TEMPLATE_HTML}
        payload.update(overrides)
        return client.post("/email-templates", json=payload)

    def test_create_extracts_variables(self, client):
        response = self.create(client)
        assert response.status_code == 201
        body = response.json()
        assert body["variables"] == ["firstName"]
        assert body["status"] == "draft"
        assert body["createdBy"] == "admin-uid"

    def test_create_rejects_bad_syntax(self, client):
        response = self.create(client, content="<body>{% if x %}</body>")
        assert response.status_code == 400

    def test_create_rejects_unknown_status(self, client):
        assert self.create(client, status="deleted").status_code == 422

    def test_duplicate_archive_and_restore(self, client):
        template_id = self.create(client, status="active").json()["id"]

        copy = client.post(f"/email-templates/{template_id}/duplicate").json()
        assert copy["name"] == "Payment Reminder (Copy)"
        assert copy["status"] == "draft"

        assert client.post(f"/email-templates/{template_id}/archive").json()["status"] == "archived"
        assert client.post(f"/email-templates/{template_id}/restore").json()["status"] == "draft"

    def test_preview_saved_template(self, client):
        template_id = self.create(client).json()["id"]
        response = client.post(f"/email-templates/{template_id}/preview", json={"data": {"firstName": "Jo", "amount": 10}})
        assert response.status_code == 200
        assert response.json()["subject"] == "Reminder for Jo"
        assert "£10.00" in response.json()["html"]

    def test_stats_and_bulk_delete(self, client):
        first = self.create(client, status="active").json()["id"]
        second = self.create(client, name="Receipt").json()["id"]

        stats = client.get("/email-templates/stats").json()
        assert stats["total"] == 2
        assert stats["byStatus"]["active"] == 1
        assert stats["byStatus"]["draft"] == 1

        response = client.post("/email-templates/batch/delete", json={"templateIds": [first, second]})
        assert response.status_code == 200
        assert client.get(f"/email-templates/{first}").status_code == 404
