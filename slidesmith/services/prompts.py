"""Prompts for content refinement and data mapping."""

REFINEMENT_SYSTEM_INSTRUCTION = (
    "You are a content refinement expert that improves text for presentations. "
    "Your task is to refine and optimize content to make it more concise, impactful, and suitable for slides. "
    "Maintain the core information while making it more presentable."
)

REFINEMENT_PROMPT = """\
# Content Refinement Task

## Original Content (Field: {field_name})
\"\"\"
{content}
\"\"\"

## Content Type
{content_type}

## Refinement Instructions
Please refine this content to make it more suitable for a presentation slide:

1. Make it {target_length}
2. Use a {style} style
3. Maintain the core information and key points
4. Optimize for visual presentation and impact
5. Ensure it fits well on a slide
{extra_instructions}
## Output
Provide ONLY the refined content, with no explanations or additional text.
"""

BULLET_POINT_INSTRUCTION = "6. Format as bullet points where appropriate"


# ── Custom description prompts (per-field, supplied with the request) ──

DEFAULT_DESCRIPTION_PROMPT = (
    "Please condense the following Description into a concise, under 50 words that highlights "
    "the startup's core offering and its business model (example B2B, B2C, B2B2C). "
    "Provide only the refined text, nothing else. Make a clear storyline and their business model "
    "to sell this company's idea to our clients."
)

DESCRIPTION_PROMPT = """\
{system_instruction}{prompt}

Current {field_label}:
{content}"""


# ── LLM data mapping ──

ANALYSIS_SYSTEM_INSTRUCTION = (
    "You are a data analysis expert that can identify structure and patterns in any data format. "
    "Provide detailed analysis that will help with data transformation."
)

ANALYSIS_PROMPT = """\
I need you to analyze the structure of the following data:

{data}

{format_hint}

Please provide a detailed analysis including:
1. What format is this data in? (CSV, JSON, table, etc.)
2. What are the column headers or key fields?
3. How many records/rows are in the data?
4. What types of values are in each column/field?
5. Are there any patterns or relationships between fields?
6. What appears to be the primary entity or subject of this data?
7. What fields would be most important for a presentation about this data?

Your analysis will be used to help map this data to a presentation template.
"""

MAPPING_SYSTEM_INSTRUCTION = (
    "You are a data transformation expert that maps source data to target templates with high accuracy. "
    "Always return valid JSON that matches the requested format exactly."
)

MAPPING_PROMPT = """\
# Data Transformation Task

## Source Data
```
{data}
```

## Data Analysis
{analysis}

## Template Information
Layout Type: {layout_upper} ({layout_label})

{template_description}

## Required Mappings
{required_mappings}

## Your Task
Transform the source data to match the template requirements. For each item in the source data:
1. Extract the relevant information
2. Map it to the corresponding template fields (all placeholders use the {{{{field}}}} format)
3. Transform content as needed (summarize long text, format dates, etc.)
4. Ensure the output matches the exact format required by the template

IMPORTANT NOTES:
- The template ONLY uses {{{{field}}}} format for placeholders (e.g., {{{{name}}}}, {{{{description}}}})
- Produce one item per source record with unprefixed field names; items are paired for double layouts afterwards
- Image fields (e.g., {{{{logo}}}}, {{{{image}}}}, {{{{photo}}}}) are detected automatically and processed differently
- For image fields, provide a URL, base64 data, or a descriptive text that can be used to generate a placeholder
- All text content will be refined for presentation quality based on the field type and context
- Extract all relevant information from the source data, even if not explicitly requested in the template

Return a JSON object with this structure:
```json
{{
  "items": [
    {{ "field": "value" }}
  ],
  "metadata": {{
    "detectedFormat": "csv",
    "totalItems": 0,
    "mappingConfidence": 0.0
  }}
}}
```

Only return the JSON object, nothing else. Ensure it is valid JSON that can be parsed.
"""

IMAGE_FIELD_GUIDANCE = """\
## Image Field Guidance

Some fields may represent images (e.g., logo, image, photo, thumbnail, icon):
1. For image fields, provide one of the following:
   - A direct URL to an image (e.g., 'https://example.com/image.jpg')
   - A file identifier from the configured image store
   - Base64 encoded image data
   - A descriptive text that can be used to generate a placeholder
2. Image fields will be automatically detected based on their names
3. The system will handle positioning and sizing of images automatically
4. Any field containing 'image', 'logo', 'photo', 'picture', 'icon', or 'thumbnail' will be treated as an image
"""

DOUBLE_LAYOUT_GUIDANCE = """\
## Double Layout Guidance

This template shows two items per slide:
1. Fields in the template are prefixed with item1 and item2 (e.g., {{item1Name}}, {{item2Description}})
2. company1/company2 prefixes are accepted as aliases for the name and description fields
3. Return one unprefixed item per source record; pairing happens after mapping
"""
