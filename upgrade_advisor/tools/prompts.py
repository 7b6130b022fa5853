"""
Prompt builders for upgrade analysis.

Subject fields are HTML-escaped before interpolation so package metadata
cannot inject markup or instructions into the report template.
"""

import html

from ..schemas.analysis import AnalysisSubject

RESEARCH_SYSTEM_PROMPT = (
    "You are a software research assistant. Provide factual, current information about "
    "software packages, versions, security issues, and changes. Focus on facts, not formatting."
)


def _safe(value: str) -> str:
    return html.escape(value or "Unknown")


def research_prompt(subject: AnalysisSubject) -> str:
    """The 18-point fact-gathering prompt sent to Perplexity (and to Claude when used alone)."""
    name = _safe(subject.display_name)
    package_id = _safe(subject.package_id)
    current = _safe(subject.current_version)
    available = _safe(subject.available_version)

    return f"""Research the software application {name} (package: {package_id}) and its upgrade from version {current} to {available}.

Provide comprehensive information about:

**Application Overview:**
1. What is {name} and what does it do?
2. Who develops/maintains this software?
3. What category/type of application is it?
4. Is it free, paid, or freemium?
5. What are its main features and use cases?

**Version Analysis:**
6. What changed between version {current} and {available}?
7. Any security fixes or vulnerabilities addressed?
8. New features, improvements, or enhancements?
9. Known issues, bugs fixed, or breaking changes?
10. Performance improvements or system requirement changes?

**Security & Trust:**
11. Any recent security incidents or vulnerabilities?
12. Developer reputation and trustworthiness?
13. Code signing and authenticity verification?

**User Impact:**
14. Should users upgrade immediately or wait?
15. Any compatibility concerns with other software?
16. System requirements changes
17. Release date and stability information
18. User feedback or reviews about this version

Focus on facts and current information. Do not format the response."""


def formatting_prompt(subject: AnalysisSubject, research_text: str) -> str:
    """Ask Claude to turn raw research into the structured upgrade report."""
    name = _safe(subject.display_name)
    package_id = _safe(subject.package_id)
    current = _safe(subject.current_version)
    available = _safe(subject.available_version)

    return f"""# 🔍 Software Analysis & Upgrade Report: {name}

You are a senior software analyst. Format the following research data into a comprehensive software analysis and upgrade recommendation report.

## Research Data:
{research_text}

## Package Details:
- **Package ID**: `{package_id}`
- **Current Version**: `{current}`
- **Available Version**: `{available}`

## Required Report Format:

Provide your analysis in this **exact markdown structure**:

### 📋 **Application Overview**
- **Software Name**: {name}
- **Developer/Publisher**: [From research]
- **Category**: [Application type/category]
- **License**: [Free/Paid/Freemium]
- **Primary Purpose**: [What the software does]
- **Key Features**: [Main functionality]

### 🎯 **Executive Summary**
> 🟢 RECOMMENDED / 🟡 CONDITIONAL / 🔴 NOT RECOMMENDED

Brief 1-2 sentence recommendation with urgency level.

### 🔄 **Version Changes**
- **Current Version**: `{current}`
- **Target Version**: `{available}`
- **Update Type**: 🔵 Major / 🟡 Minor / 🟢 Patch / 🔴 Breaking
- **Release Date**: [Date if available]

### ⚡ **Key Improvements**
- 🆕 **New Features**: List major new functionality
- 🐛 **Bug Fixes**: Critical issues resolved
- 🔧 **Enhancements**: Performance and usability improvements
- 📊 **Performance**: Speed/resource impact changes

### 🔒 **Security Assessment**
- 🛡️ **Security Fixes**: List any CVE fixes or security patches
- 🚨 **Vulnerability Status**: Current security standing
- 🔐 **Risk Level**: 🟢 Low / 🟡 Medium / 🔴 High / 🟣 Critical

### ⚠️ **Compatibility & Risks**
- 💥 **Breaking Changes**: List any breaking changes
- 🔗 **Dependencies**: New requirements or conflicts
- 🖥️ **System Requirements**: Hardware/OS compatibility
- 🔄 **Migration Effort**: 🟢 None / 🟡 Minor / 🔴 Significant

### 📅 **Recommendation Timeline**
- 🚀 **Immediate** (Security/Critical)
- 📆 **Within 1 week** (Important updates)
- 🗓️ **Within 1 month** (Regular updates)
- ⏳ **When convenient** (Optional updates)

### 🎯 **Action Items**
- [ ] **Pre-upgrade**: Backup/preparation steps
- [ ] **During upgrade**: Installation considerations
- [ ] **Post-upgrade**: Verification and testing
- [ ] **Rollback plan**: If issues occur

---
💡 **Pro Tip**: Include any relevant links to release notes or documentation.

**Important**: Use exact emoji indicators, maintain formatting, provide actionable insights."""


def bedrock_analysis_prompt(subject: AnalysisSubject) -> str:
    """Single-shot analysis prompt for Bedrock-hosted models (no research stage)."""
    name = _safe(subject.display_name)
    package_id = _safe(subject.package_id)
    current = _safe(subject.current_version)
    available = _safe(subject.available_version)

    return f"""You are a senior software analyst. Analyze the following software upgrade scenario and provide a comprehensive recommendation.

## Software Details:
- **Name**: {name}
- **Package ID**: {package_id}
- **Current Version**: {current}
- **Available Version**: {available}

## Analysis Requirements:

Provide your analysis in this exact markdown structure:

### 📋 **Application Overview**
- **Software Name**: {name}
- **Developer/Publisher**: [Research required]
- **Category**: [Application type]
- **License**: [Free/Paid/Freemium]
- **Primary Purpose**: [What the software does]
- **Key Features**: [Main functionality]

### 🎯 **Executive Summary**
> 🟢 RECOMMENDED / 🟡 CONDITIONAL / 🔴 NOT RECOMMENDED

Brief 1-2 sentence recommendation with urgency level.

### 🔄 **Version Changes**
- **Current Version**: `{current}`
- **Target Version**: `{available}`
- **Update Type**: 🔵 Major / 🟡 Minor / 🟢 Patch / 🔴 Breaking
- **Release Date**: [Date if known]

### ⚡ **Key Improvements**
- 🆕 **New Features**: List major new functionality
- 🐛 **Bug Fixes**: Critical issues resolved
- 🔧 **Enhancements**: Performance and usability improvements
- 📊 **Performance**: Speed/resource impact changes

### 🔒 **Security Assessment**
- 🛡️ **Security Updates**: Vulnerabilities fixed
- 🚨 **Risk Level**: 🟢 Low / 🟡 Medium / 🔴 High / 🟣 Critical
- 🔍 **CVE Information**: Any CVEs addressed
- 📋 **Security Notes**: Additional security considerations

### ⚠️ **Risk Analysis**
- 🔧 **Compatibility**: System and software compatibility
- 📱 **Dependencies**: Required updates or conflicts
- 🔄 **Rollback**: Ease of reverting if issues occur
- ⏱️ **Timing**: Best time to apply update

### 📊 **Recommendation Details**
- **Priority Level**: 🔴 Urgent / 🟡 Medium / 🟢 Low
- **Action Timeline**: Immediate / This Week / This Month / When Convenient
- **Prerequisites**: Any required preparations
- **Best Practices**: Implementation recommendations

### 📝 **Additional Notes**
- Any special considerations
- Alternative solutions if applicable
- Links to release notes or documentation

Focus on security, stability, and practical business impact. Be specific about risks and benefits."""
