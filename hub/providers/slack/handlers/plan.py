"""/plan: turn an idea into a design-document issue."""

from hub.models.envelope import HandlerKind
from hub.models.slack_event import SlackCommandData
from hub.providers.slack.handlers.base import IssueDocumentHandler
from hub.utils.repository_parser import ParsedRepository

PLAN_PROMPT = """You are a senior software architect creating a detailed design document for a new feature idea.

User {user_name} from {channel_name} channel has submitted the following idea:
"{idea}"

Please create a comprehensive GitHub issue that includes:

1. **Executive Summary** - Brief overview of the proposed feature
2. **Problem Statement** - What problem does this solve? Who benefits?
3. **Proposed Solution** - Detailed technical approach
4. **Technical Architecture** - System design and component interaction
5. **Implementation Plan** - Step-by-step approach with milestones
6. **Code Examples** - Concrete implementation examples in the appropriate language
7. **API Design** (if applicable) - Endpoints, request/response formats
8. **Database Schema** (if applicable) - Tables, relationships, indexes
9. **Security Considerations** - Authentication, authorization, data protection
10. **Performance Implications** - Expected load, scaling considerations
11. **Testing Strategy** - Unit tests, integration tests, E2E tests
12. **Migration Plan** (if modifying existing features)
13. **Open Questions** - Technical decisions that need product owner input
14. **Alternatives Considered** - Other approaches and why they weren't chosen
15. **Success Metrics** - How will we measure if this is successful?
16. **Timeline Estimate** - Rough development time estimate

Format the response as a well-structured GitHub issue with markdown formatting.
Make it thorough but readable. Include specific code examples where helpful.
End with a section of specific questions for the product owner to help refine requirements."""


class PlanHandler(IssueDocumentHandler):
    kind = HandlerKind.PLAN
    command = "/plan"
    usage_text = "❌ Please provide an idea to plan. Usage: `/plan [your idea]`"
    failure_text = "Failed to create design document"
    labels = ("enhancement", "design-document", "needs-review")
    fallback_title_prefix = "Feature Idea"
    body_heading = "Submitted via Slack"
    original_label = "Original Idea"
    success_text = "Design document created successfully!"

    def acknowledgment_text(self, data: SlackCommandData, parsed: ParsedRepository) -> str:
        return (
            f'🤔 Processing your idea: "{data.text.strip()}"\n'
            "I'll create a detailed GitHub issue with a design document..."
        )

    def build_prompt(self, data: SlackCommandData, parsed: ParsedRepository) -> str:
        return PLAN_PROMPT.format(
            user_name=data.user_name or data.user_id,
            channel_name=data.channel_name or data.channel_id,
            idea=self.source_text(data, parsed),
        )
