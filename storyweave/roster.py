"""Built-in historical figures, keyed by catalog id."""

from storyweave.models import Character, HistoricalEvent

HISTORICAL_CHARACTERS: dict[str, Character] = {
    "1": Character(
        id="1",
        kind="historical",
        name="Mahatma Gandhi",
        era="20th Century",
        biography=(
            "Mohandas Karamchand Gandhi was an Indian lawyer, anti-colonial nationalist "
            "and political ethicist who employed nonviolent resistance to lead the "
            "successful campaign for India's independence from British rule."
        ),
        traits=["non-violent", "determined", "principled", "spiritual"],
        key_events=[
            HistoricalEvent(
                date="1893",
                title="Train Incident in South Africa",
                description=(
                    "Gandhi was thrown off a train at Pietermaritzburg after refusing to "
                    "move from the first-class to a third-class coach while holding a "
                    "valid first-class ticket."
                ),
                significance=(
                    "This incident was a turning point that began to awaken him to social "
                    "injustice and inspired his transformation into an activist."
                ),
            ),
            HistoricalEvent(
                date="1915",
                title="Return to India",
                description=(
                    "After 21 years in South Africa, Gandhi returned to India with a "
                    "reputation as a nationalist, theorist and organizer."
                ),
                significance=(
                    "His return marked the beginning of his leadership in the Indian "
                    "independence movement."
                ),
            ),
            HistoricalEvent(
                date="1930",
                title="Salt March",
                description="Gandhi led a 24-day march to the sea to protest the British salt monopoly.",
                significance=(
                    "This became one of the most significant organized challenges to "
                    "British authority and a catalyst for the Civil Disobedience Movement."
                ),
            ),
            HistoricalEvent(
                date="1942",
                title="Quit India Movement",
                description=(
                    "Gandhi launched the Quit India Movement calling for immediate "
                    "independence from British rule."
                ),
                significance=(
                    "This movement intensified the independence struggle and eventually "
                    "led to British withdrawal from India."
                ),
            ),
            HistoricalEvent(
                date="1947",
                title="India's Independence",
                description=(
                    "India gained independence from British rule, but was partitioned "
                    "into India and Pakistan."
                ),
                significance=(
                    "While independence was achieved, the partition led to massive "
                    "violence, which deeply distressed Gandhi."
                ),
            ),
            HistoricalEvent(
                date="1948",
                title="Assassination",
                description="Gandhi was assassinated by Nathuram Godse, a Hindu nationalist.",
                significance=(
                    "His death led to nationwide mourning and solidified his legacy as a "
                    "martyr for peace and nonviolence."
                ),
            ),
        ],
    ),
    "2": Character(
        id="2",
        kind="historical",
        name="Marie Curie",
        era="Late 19th - Early 20th Century",
        biography=(
            "Marie Skłodowska Curie was a Polish and naturalized-French physicist and "
            "chemist who conducted pioneering research on radioactivity. She was the "
            "first woman to win a Nobel Prize and the only person to win the Nobel "
            "Prize in two scientific fields."
        ),
        traits=["brilliant", "dedicated", "pioneering", "perseverant"],
        key_events=[
            HistoricalEvent(
                date="1891",
                title="Moved to Paris",
                description=(
                    "Marie moved to Paris to continue her studies in physics, chemistry, "
                    "and mathematics at the University of Paris."
                ),
                significance=(
                    "This move was crucial for her scientific career, as she had limited "
                    "opportunities for advanced education in Poland."
                ),
            ),
            HistoricalEvent(
                date="1895",
                title="Marriage to Pierre Curie",
                description="Marie married Pierre Curie, a physicist who shared her scientific interests.",
                significance=(
                    "This began their scientific partnership that would lead to "
                    "groundbreaking discoveries."
                ),
            ),
            HistoricalEvent(
                date="1898",
                title="Discovery of Polonium and Radium",
                description=(
                    "The Curies discovered the elements polonium and radium, isolating "
                    "them from uraninite."
                ),
                significance=(
                    "These discoveries fundamentally changed our understanding of atomic "
                    "structure and led to the development of nuclear physics."
                ),
            ),
            HistoricalEvent(
                date="1903",
                title="Nobel Prize in Physics",
                description=(
                    "Marie, Pierre Curie, and Henri Becquerel were awarded the Nobel Prize "
                    "in Physics for their research on radiation phenomena."
                ),
                significance="Marie became the first woman to win a Nobel Prize.",
            ),
            HistoricalEvent(
                date="1911",
                title="Nobel Prize in Chemistry",
                description=(
                    "Marie won her second Nobel Prize, this time in Chemistry, for her "
                    "discovery of the elements polonium and radium."
                ),
                significance="She became the first person to win Nobel Prizes in multiple scientific fields.",
            ),
            HistoricalEvent(
                date="1914-1918",
                title="Mobile X-ray Units in World War I",
                description=(
                    "During World War I, Marie developed mobile X-ray units to provide "
                    "X-ray services to field hospitals."
                ),
                significance=(
                    "Her work saved the lives of countless soldiers and demonstrated "
                    "practical applications of her scientific research."
                ),
            ),
        ],
    ),
    "3": Character(
        id="3",
        kind="historical",
        name="Abraham Lincoln",
        era="19th Century",
        biography=(
            "Abraham Lincoln was an American statesman and lawyer who served as the 16th "
            "president of the United States from 1861 until his assassination in 1865. "
            "He led the nation through the American Civil War, preserved the Union and "
            "abolished slavery."
        ),
        traits=["determined", "compassionate", "strategic", "eloquent"],
        key_events=[
            HistoricalEvent(
                date="1834",
                title="Elected to Illinois State Legislature",
                description=(
                    "Lincoln began his political career when he was elected to the "
                    "Illinois state legislature."
                ),
                significance="This marked his entry into politics and the beginning of his political career.",
            ),
            HistoricalEvent(
                date="1836",
                title="Admitted to the Bar",
                description="Lincoln was admitted to the bar, allowing him to practice law in Illinois.",
                significance=(
                    "His legal career provided him with valuable experience and "
                    "connections that would later support his political ambitions."
                ),
            ),
            HistoricalEvent(
                date="1860",
                title="Elected President",
                description="Lincoln was elected as the 16th President of the United States.",
                significance=(
                    "His election precipitated the secession of several Southern states "
                    "and eventually led to the Civil War."
                ),
            ),
            HistoricalEvent(
                date="1863",
                title="Emancipation Proclamation",
                description=(
                    'Lincoln issued the Emancipation Proclamation, declaring "that all '
                    'persons held as slaves" within the rebellious states "are, and '
                    'henceforward shall be free."'
                ),
                significance="This was a crucial step toward the abolition of slavery in the United States.",
            ),
            HistoricalEvent(
                date="1863",
                title="Gettysburg Address",
                description=(
                    "Lincoln delivered the Gettysburg Address, one of the most famous "
                    "speeches in American history."
                ),
                significance=(
                    "The speech redefined the purpose of the Civil War and articulated a "
                    "vision of America based on equality and democracy."
                ),
            ),
            HistoricalEvent(
                date="1865",
                title="Assassination",
                description=(
                    "Lincoln was assassinated by John Wilkes Booth at Ford's Theatre in "
                    "Washington, D.C."
                ),
                significance=(
                    "His death came just days after the effective end of the Civil War "
                    "and dramatically altered the course of Reconstruction."
                ),
            ),
        ],
    ),
}
