"""/bug: turn a bug report into a root-cause-analysis issue."""

from hub.models.envelope import HandlerKind
from hub.models.slack_event import SlackCommandData
from hub.providers.slack.handlers.base import IssueDocumentHandler
from hub.utils.repository_parser import ParsedRepository

BUG_PROMPT = """You are a senior software engineer performing root cause analysis and solution design for a bug report.

User {user_name} from {channel_name} channel has reported the following bug:
"{report}"

Please create a comprehensive GitHub issue that includes:

## 🐛 Bug Report Analysis

### 1. **Issue Summary**
Provide a clear, concise summary of the bug.

### 2. **Symptoms**
- What is the observed behavior?
- What error messages appear?
- When does it occur?
- How frequently does it occur?

### 3. **Expected Behavior**
What should happen instead?

### 4. **Root Cause Analysis**
#### Hypothesis 1: [Most Likely Cause]
- Technical explanation
- Code locations likely affected
- Why this would cause the observed symptoms

#### Hypothesis 2: [Alternative Cause]
- Technical explanation
- Code locations likely affected
- Why this would cause the observed symptoms

#### Hypothesis 3: [Less Likely but Possible]
- Technical explanation
- Code locations likely affected
- Why this would cause the observed symptoms

### 5. **Impact Assessment**
- **Severity**: Critical/High/Medium/Low
- **Affected Users**: Who is impacted?
- **Business Impact**: What functionality is broken?
- **Data Integrity**: Any risk to data?
- **Security Implications**: Any security concerns?

### 6. **Reproduction Steps**
1. [Step by step instructions to reproduce]
2. [Include specific data/conditions needed]
3. [Expected vs actual results]

### 7. **Solution Design**

#### Immediate Fix (Hotfix)
- Quick solution to stop the bleeding
- Code changes required
- Estimated time: X hours

```[language]
// Example code for immediate fix
```

#### Proper Solution
- Comprehensive fix addressing root cause
- Architecture changes if needed
- Code changes required
- Estimated time: X days

```[language]
// Example code for proper solution
```

### 8. **Testing Strategy**
- **Unit Tests**: Test cases to add
- **Integration Tests**: Scenarios to cover
- **Regression Tests**: Ensure no side effects
- **Manual Testing**: Specific scenarios to verify

### 9. **Prevention Measures**
- How can we prevent similar bugs in the future?
- Code review checklist additions
- Monitoring/alerting improvements
- Documentation updates needed

### 10. **Questions for Product Owner**
- [ ] Should we prioritize the hotfix or wait for proper solution?
- [ ] Are there any workarounds users can use in the meantime?
- [ ] What is the acceptable downtime for fixing this?
- [ ] Should we notify affected users? If so, what should we communicate?
- [ ] [Add specific questions based on the bug]

### 11. **Related Issues**
- List any potentially related issues or previous occurrences

### 12. **References**
- Links to relevant documentation
- Stack traces
- Log files
- Related PRs or commits

Format the response as a well-structured GitHub issue with markdown formatting.
Be thorough but concise. Include specific code examples where helpful.
If you need more information to properly diagnose, list those questions clearly."""


class BugHandler(IssueDocumentHandler):
    kind = HandlerKind.BUG
    command = "/bug"
    usage_text = "❌ Please describe the bug. Usage: `/bug [description of the issue]`"
    failure_text = "Failed to create bug analysis"
    labels = ("bug", "needs-triage", "root-cause-analysis")
    fallback_title_prefix = "Bug Report"
    body_heading = "Reported via Slack"
    original_label = "Original Report"
    success_text = "Bug analysis created successfully!"

    def acknowledgment_text(self, data: SlackCommandData, parsed: ParsedRepository) -> str:
        return (
            f'🔍 Analyzing bug report: "{data.text.strip()}"\n'
            "I'll create a detailed root cause analysis and solution design..."
        )

    def build_prompt(self, data: SlackCommandData, parsed: ParsedRepository) -> str:
        return BUG_PROMPT.format(
            user_name=data.user_name or data.user_id,
            channel_name=data.channel_name or data.channel_id,
            report=self.source_text(data, parsed),
        )
