"""Prompt templates for plan, task and rubric calls."""

PLAN_START = "---START PLAN---"
PLAN_END = "---END PLAN---"
TASK_START = "---START TASK---"
TASK_END = "---END TASK---"

PLAN_FIELDS = ["TASK_NUMBER", "TYPE", "DIFFICULTY", "TOPIC", "GOAL"]
TASK_FIELDS = ["TYPE", "DIFFICULTY", "TOPIC", "TEXT", "ANSWER", "SOLUTION"]

PLAN_SYSTEM_PROMPT = (
    "Create task generation plans. Output plans in the specified format. "
    "Each plan must include TASK_NUMBER, TYPE, DIFFICULTY, TOPIC, and GOAL fields."
)

PLAN_USER_TEMPLATE = """Generate exactly {count} task plans for {subject}.

REQUIREMENTS:
- Types: {types} (distribute evenly)
- Difficulty: {easy} easy, {medium} medium, {hard} hard
- Topics: {topics} (ensure balanced coverage)

FORMAT (one plan per task):
{plan_start}
TASK_NUMBER: [1-{count}]
TYPE: [{types}]
DIFFICULTY: [easy, medium, hard]
TOPIC: [{topics}]
GOAL: [specific learning objective for this task]
{plan_end}

Generate all {count} plans now:"""

TASK_SYSTEM_PROMPT = (
    "Generate educational tasks. Output ONLY the task in the specified format. "
    f"Start with {TASK_START} and end with {TASK_END}. "
    "Include TYPE, DIFFICULTY, TOPIC, TEXT, ANSWER, and SOLUTION fields. "
    "For Multiple Choice questions, include OPTIONS field with each option on a "
    "separate line (A), B), C), D)). ANSWER contains the final result only. "
    "SOLUTION contains detailed step-by-step process."
)

TASK_USER_TEMPLATE = """Generate a {difficulty} difficulty {type} task for {subject}.

PARAMETERS:
- Type: {type}
- Topic: {topic}
- Complexity: {difficulty}
- Goal: {goal}

FORMAT:
{task_start}
TYPE: {type}
DIFFICULTY: {difficulty}
TOPIC: {topic}
TEXT: [task description aligned with goal and {difficulty} difficulty - DO NOT include options in TEXT]
{options_block}ANSWER: [final answer only]
SOLUTION: [detailed step-by-step solution]
{task_end}

{guidance}"""

OPTIONS_BLOCK = """OPTIONS:
A) First option text
B) Second option text
C) Third option text
D) Fourth option text
"""

RUBRIC_SYSTEM_PROMPT = (
    "You are an expert educational assessor. You score student responses "
    "against the supplied criteria and answer with JSON only."
)

RUBRIC_USER_TEMPLATE = """Task: Evaluate the student response to this {type} question.

Question: {question}
Scoring criteria / model answer: {criteria}
Student Response: {answer}

Evaluation Criteria:
1. Conceptual understanding demonstration
2. Key learning objectives coverage
3. Technical accuracy and precision
4. Structure and use of evidence

Respond in this JSON format:
{{
  "score": number (0-100),
  "feedback": "Detailed pedagogical feedback explaining correctness/errors",
  "keyPointsCovered": ["list", "of", "key", "points", "demonstrated"],
  "improvementSuggestions": ["specific", "recommendations"]
}}"""


# ── Per-type guidance: what TEXT / ANSWER / SOLUTION must contain ─────────────

TYPE_GUIDANCE: dict[str, str] = {
    "Multiple Choice": """
- Question text should NOT include the options in the TEXT field
- OPTIONS must be listed line by line, one option per line:
  A) First option text
  B) Second option text
  C) Third option text
  D) Fourth option text
- Each option must be on its own line starting with A), B), C), or D)
- ANSWER: single letter (A, B, C, or D)
- SOLUTION: step-by-step analysis explaining why correct answer is right and others are wrong""",
    "True/False": """
- Unambiguous statement (single concept, no double negatives)
- ANSWER: "True" or "False"
- SOLUTION: step-by-step explanation with reasoning""",
    "Numerical": """
- Question with a single numeric result
- ANSWER: the number only, with units if any (e.g., "9.81 m/s^2")
- SOLUTION: numbered calculation steps""",
    "Problem Solving": """
- Clear problem statement with given information
- ANSWER: final numerical answer with units (e.g., "x = 4 cm", "6 units")
- SOLUTION: numbered steps showing all calculations, formulas, substitutions, and reasoning""",
    "Short Answer": """
- Focused question requiring specific points
- ANSWER: concise text answer with all key points
- SOLUTION: step-by-step guide on structuring the answer, key concepts to include, and how to connect them""",
    "Fill in the Blank": """
- Use ___ for blanks, context makes answer clear
- ANSWER: fill-in values (list variations if applicable)
- SOLUTION: step-by-step reasoning for each blank""",
    "Essay": """
- Clear writing prompt with topic and word count
- ANSWER: evaluation criteria with required points, weights, and word count range
- SOLUTION: step-by-step guide on thesis development, structure, evidence, and writing approach""",
    "Matching": """
- Two labeled columns, 4-8 pairs, one correct match per item
- ANSWER: matched pairs
- SOLUTION: step-by-step matching process""",
    "Coding": """
- Programming language, problem description, input/output format, test cases
- ANSWER: solution code or approach
- SOLUTION: step-by-step algorithm development""",
    "Debugging": """
- Code with bugs, expected vs actual behavior, error messages
- ANSWER: identified bugs and fixes
- SOLUTION: step-by-step debugging process""",
    "Case Study": """
- Detailed scenario with context, background, data
- ANSWER: analysis results or key findings
- SOLUTION: step-by-step analysis methodology""",
    "Diagram Analysis": """
- Clear diagram description, elements to identify, measurements
- ANSWER: identified elements and relationships
- SOLUTION: step-by-step diagram interpretation""",
    "Data Analysis": """
- Dataset description, analysis tasks, statistical methods
- ANSWER: analysis results or insights
- SOLUTION: step-by-step data processing methodology""",
    "Theory": """
- Specific theoretical concept, key principles, practical applications
- ANSWER: theoretical explanation or key points
- SOLUTION: step-by-step theoretical explanation""",
    "Practical": """
- Materials/tools, procedure, safety, expected outcomes
- ANSWER: procedure summary or key steps
- SOLUTION: detailed step-by-step practical methodology""",
}

SUBJECT_GUIDANCE: dict[str, dict[str, str]] = {
    "Mathematics": {
        "Multiple Choice": "- Include calculations, common misconceptions as distractors, units",
        "Problem Solving": "- Include formulas, mathematical reasoning, diagrams, units",
        "Short Answer": "- Mathematical terms/definitions, numerical examples",
    },
    "Computer Science": {
        "Multiple Choice": "- Code snippets, programming concepts, common pitfalls",
        "Coding": "- Programming language, I/O format, complexity requirements, test cases",
        "Debugging": "- Real syntax, common errors, expected vs actual output",
        "Problem Solving": "- Algorithmic thinking, pseudocode, efficiency",
    },
    "Physics": {
        "Multiple Choice": "- Unit conversions, formulas/constants, conceptual questions",
        "Problem Solving": "- Free body diagrams, vectors, standard notation",
    },
    "Chemistry": {
        "Multiple Choice": "- Chemical equations, molecular structures, periodic table",
        "Problem Solving": "- Balanced equations, stoichiometry, nomenclature",
    },
    "Biology": {
        "Multiple Choice": "- Diagram labeling, process sequences, terminology",
        "Case Study": "- Real scenarios, experimental data, scientific method",
    },
    "English": {
        "Essay": "- Writing prompts, structure, evaluation criteria",
        "Short Answer": "- Grammar, literary analysis, reading comprehension",
    },
    "History": {
        "Essay": "- Primary sources, chronology, historical evidence",
        "Case Study": "- Historical documents, multiple perspectives, cause-effect",
    },
}


def get_type_guidance(task_type: str, subject: str | None = None) -> str:
    """Base guidance for a task type plus the subject-specific addendum, if any."""
    guidance = TYPE_GUIDANCE[task_type]
    extra = SUBJECT_GUIDANCE.get(subject or "", {}).get(task_type)
    if extra:
        guidance += "\n\n" + extra
    return guidance
