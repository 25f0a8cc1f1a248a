#!/usr/bin/env python3
"""
Pet Console - talk to a simulated pet from the terminal

Every line you type is an interaction event. Slash commands perform
actions (feed, play, teach, ...) and show what the pet has learned:

- symbols and bindings built from what you say
- memories, patterns and crystallized behavior loops
- curiosity and the pet's self-model

Run with: python pet_console.py [config.json]
"""

import logging
import os
import sys
from typing import Any, Dict, Optional

from petmind import CognitionSystem, load_config


OWNER_ID = 'console'


class Colors:
    """ANSI color codes for terminal output"""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    # Colors
    RED = '\033[91m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    MAGENTA = '\033[95m'
    CYAN = '\033[96m'
    WHITE = '\033[97m'


EMOTION_COLORS = {
    'happy': Colors.GREEN,
    'excited': Colors.YELLOW,
    'content': Colors.BLUE,
    'curious': Colors.CYAN,
    'sad': Colors.DIM,
    'neutral': Colors.WHITE,
}


def clear_screen():
    """Clear terminal screen"""
    os.system('cls' if os.name == 'nt' else 'clear')


def make_bar(value: float, width: int = 20, filled: str = '█', empty: str = '░') -> str:
    """Create a progress bar"""
    value = max(0.0, min(1.0, value))
    filled_count = int(value * width)
    return filled * filled_count + empty * (width - filled_count)


def colorize_level(value: float) -> str:
    """Color a value based on its level"""
    if value > 0.7:
        return Colors.GREEN
    elif value > 0.5:
        return Colors.YELLOW
    elif value > 0.3:
        return Colors.CYAN
    else:
        return Colors.DIM


def print_dashboard(system: CognitionSystem) -> None:
    """Print the cognition status dashboard"""
    metrics = system.get_metrics()
    state = metrics['state']

    print(f"\n{Colors.BOLD}{'=' * 60}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.CYAN}  PET COGNITION STATUS{Colors.RESET}")
    print(f"{Colors.BOLD}{'=' * 60}{Colors.RESET}\n")

    print(f"  {Colors.BOLD}Cognitive State:{Colors.RESET}")
    for name, level in state.items():
        color = colorize_level(level)
        print(f"    {name:22} {color}[{make_bar(level)}]{Colors.RESET} {level:.2f}")
    print()

    symbols = metrics['symbols']
    memory = metrics['memory']
    patterns = metrics['patterns']
    loops = metrics['loops']
    curiosity = metrics['curiosity']

    print(f"  {Colors.BOLD}Components:{Colors.RESET}")
    print(f"    Symbols:           {symbols['symbols']:,}  (bindings {symbols['bindings']:,})")
    print(f"    Memories:          {memory['memories']:,}  (episodic {memory['episodic']}, semantic {memory['semantic']})")
    print(f"    Patterns:          {patterns['patterns']:,}")
    print(f"    Behavior loops:    {loops['crystallized']:,}  (active {loops['active']})")
    print(f"    Discoveries:       {curiosity['discoveries']:,}  (explorations {curiosity['explorations']})")
    print()

    suggestion = system.curiosity.suggest()
    print(f"  {Colors.DIM}Curious about: {suggestion['category']} - {suggestion['suggestion']}{Colors.RESET}")
    print(f"{Colors.BOLD}{'=' * 60}{Colors.RESET}\n")


def print_self(description: Optional[Dict[str, Any]]) -> None:
    if description is None:
        print(f"{Colors.DIM}The pet has not formed a self-model yet.{Colors.RESET}\n")
        return

    print(f"\n{Colors.MAGENTA}{Colors.BOLD}{description['name']}:{Colors.RESET}")
    print(f"  {Colors.BOLD}Personality:{Colors.RESET}")
    for trait, value in description['personality'].items():
        print(f"    {trait:18} [{make_bar(value, width=15)}] {value:.2f}")
    print(f"  Values:        {', '.join(description['top_values'])}")
    for rel in description['relationships']:
        print(f"  Bond with {rel['entity']}: {rel['bond']:.2f} (trust {rel['trust']:.2f})")
    print(f"  Coherence:     {description['coherence']:.2f}")
    print(f"  Self-awareness: {description['self_awareness']:.2f}\n")


def print_response(response: Dict[str, Any], result=None) -> None:
    """Print the pet's response with context"""
    emotion = response.get('emotion', 'neutral')
    color = EMOTION_COLORS.get(emotion, Colors.WHITE)
    print(f"\n{color}{Colors.BOLD}Pet:{Colors.RESET} {response['text']}")

    details = [f"Emotion: {emotion}", f"Animation: {response['animation']}", response['vocalization']]
    loop = response.get('loop')
    if loop:
        details.append(f"Loop: {loop['loop_id']} ({loop['confidence']})")
    if result is not None:
        details.append(f"Resonance: {result.resonance:.2f}")
        if result.loop_id:
            details.append(f"Crystallized: {result.loop_id}")
    print(f"{Colors.DIM}  [{' | '.join(details)}]{Colors.RESET}\n")


def print_help():
    """Print help information"""
    print(f"""
{Colors.BOLD}Pet Console - Commands{Colors.RESET}

  {Colors.CYAN}/feed{Colors.RESET}        - Feed the pet
  {Colors.CYAN}/play{Colors.RESET}        - Play with the pet
  {Colors.CYAN}/pet{Colors.RESET}         - Pet the pet
  {Colors.CYAN}/teach X{Colors.RESET}     - Teach the pet a trick
  {Colors.CYAN}/name X{Colors.RESET}      - Give the pet a name
  {Colors.CYAN}/good{Colors.RESET}        - Reward the last behavior
  {Colors.CYAN}/bad{Colors.RESET}         - Discourage the last behavior
  {Colors.CYAN}/status{Colors.RESET}      - Show the cognition dashboard
  {Colors.CYAN}/memories{Colors.RESET}    - Show recent memories
  {Colors.CYAN}/loops{Colors.RESET}       - Show behavior loops
  {Colors.CYAN}/self{Colors.RESET}        - Ask the pet to describe itself
  {Colors.CYAN}/clear{Colors.RESET}       - Clear the screen
  {Colors.CYAN}/save{Colors.RESET}        - Save state now
  {Colors.CYAN}/help{Colors.RESET}        - Show this help
  {Colors.CYAN}/quit{Colors.RESET}        - Exit

Just type naturally to talk to the pet!
""")


def interact(system: CognitionSystem, action: str, payload: Dict[str, Any]) -> Optional[str]:
    """Submit an action event and print the pet's response. Returns the loop id used."""
    result = system.submit_event(OWNER_ID, payload)
    response = system.respond(OWNER_ID, action)
    print_response(response, result)
    loop = response.get('loop')
    return loop['loop_id'] if loop else None


def main():
    """Main console loop"""
    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
    )

    print(f"""
{Colors.BOLD}{Colors.CYAN}
+===========================================================+
|                                                           |
|   PET CONSOLE                                             |
|                                                           |
|   symbols -> memory -> patterns -> behavior loops         |
|   curiosity -> identity                                   |
|                                                           |
+===========================================================+
{Colors.RESET}
Type {Colors.CYAN}/help{Colors.RESET} for commands, or just start talking!
""")

    config_path = sys.argv[1] if len(sys.argv) > 1 else 'petmind.json'
    config = load_config(config_path)

    print(f"{Colors.DIM}Waking up the pet...{Colors.RESET}")
    system = CognitionSystem(config)
    system.start()
    print(f"{Colors.DIM}Pet ready with {system.symbols.symbol_count:,} known symbols.{Colors.RESET}\n")

    last_loop: Optional[str] = None

    try:
        while True:
            try:
                user_input = input(f"{Colors.GREEN}You:{Colors.RESET} ").strip()

                if not user_input:
                    continue

                if user_input.startswith('/'):
                    parts = user_input.split(maxsplit=1)
                    cmd = parts[0].lower()
                    arg = parts[1].strip() if len(parts) > 1 else ''

                    if cmd in ['/quit', '/exit', '/q']:
                        print(f"\n{Colors.CYAN}The pet curls up to sleep.{Colors.RESET}")
                        break

                    elif cmd in ['/feed', '/play', '/pet']:
                        action = cmd[1:]
                        last_loop = interact(system, action, {'action': action, 'entity': OWNER_ID, 'positive': True})

                    elif cmd == '/teach':
                        trick = arg or 'sit'
                        last_loop = interact(system, 'teach', {'action': 'teach', 'trick': trick, 'learned': trick,
                                                               'tags': ['learning']})

                    elif cmd == '/name':
                        if not arg:
                            print(f"{Colors.RED}Usage: /name <name>{Colors.RESET}\n")
                        else:
                            description = system.set_name(OWNER_ID, arg)
                            print(f"{Colors.GREEN}The pet is now called {description['name']}.{Colors.RESET}\n")

                    elif cmd in ['/good', '/bad']:
                        if last_loop is None:
                            print(f"{Colors.DIM}Nothing to give feedback on yet.{Colors.RESET}\n")
                        else:
                            loop = system.report_outcome(last_loop, cmd == '/good')
                            if loop is None:
                                print(f"{Colors.DIM}That behavior has faded already.{Colors.RESET}\n")
                            else:
                                print(f"{Colors.DIM}  [{loop['id']} strength {loop['strength']:.2f}, "
                                      f"{loop['success_count']} successes]{Colors.RESET}\n")

                    elif cmd == '/status':
                        print_dashboard(system)

                    elif cmd == '/memories':
                        memories = system.get_recent_memories(OWNER_ID, 10)
                        print(f"\n{Colors.BOLD}Recent memories:{Colors.RESET}")
                        for memory in memories:
                            importance = memory['importance']
                            print(f"  {colorize_level(importance)}[{make_bar(importance, width=10)}]{Colors.RESET} "
                                  f"{', '.join(memory['features'][:5])}")
                        print()

                    elif cmd == '/loops':
                        print(f"\n{Colors.BOLD}Behavior loops:{Colors.RESET}")
                        for loop in sorted(system.loops.loops.values(), key=lambda l: l.strength, reverse=True):
                            print(f"  {loop.id:28} [{make_bar(loop.strength, width=10)}] "
                                  f"{loop.category:10} {loop.success_count} ok / {loop.failure_count} bad")
                        print()

                    elif cmd == '/self':
                        print_self(system.get_self_description(OWNER_ID))

                    elif cmd == '/save':
                        if system.checkpoint():
                            print(f"{Colors.GREEN}Saved to {config.data_dir}{Colors.RESET}\n")
                        else:
                            print(f"{Colors.RED}Save failed (see log).{Colors.RESET}\n")

                    elif cmd == '/clear':
                        clear_screen()

                    elif cmd == '/help':
                        print_help()

                    else:
                        print(f"{Colors.RED}Unknown command. Type /help for available commands.{Colors.RESET}\n")

                else:
                    result = system.submit_event(OWNER_ID, user_input)
                    response = system.respond(OWNER_ID, 'speak', prompt=user_input)
                    print_response(response, result)
                    if response.get('loop'):
                        last_loop = response['loop']['loop_id']

            except KeyboardInterrupt:
                print(f"\n\n{Colors.CYAN}Interrupted. Use /quit to exit properly.{Colors.RESET}\n")

    finally:
        system.shutdown()


if __name__ == '__main__':
    main()
